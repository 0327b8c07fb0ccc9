"""Payroll backend gateways."""

from payroll_console.gateway.base import (
    GatewayConflictError,
    GatewayError,
    GatewayNotFoundError,
    PayrollGateway,
)
from payroll_console.gateway.http import HttpPayrollGateway
from payroll_console.gateway.memory import InMemoryPayrollGateway

__all__ = [
    "PayrollGateway",
    "GatewayError",
    "GatewayNotFoundError",
    "GatewayConflictError",
    "HttpPayrollGateway",
    "InMemoryPayrollGateway",
]
