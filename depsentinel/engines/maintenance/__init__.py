"""Maintenance checker — last-release age from package registries."""

from depsentinel.engines.maintenance.checker import (
    UNMAINTAINED_AFTER_DAYS,
    MaintenanceInfo,
    check_maintenance,
    check_maintenance_batch,
)

__all__ = [
    "UNMAINTAINED_AFTER_DAYS",
    "MaintenanceInfo",
    "check_maintenance",
    "check_maintenance_batch",
]
