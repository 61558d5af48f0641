"""Core HR module — Office, Team, Employee and holiday calendar models."""

from leaveflow.core_hr.models import Employee, Office, PublicHoliday, Team

__all__ = ["Employee", "Office", "PublicHoliday", "Team"]
