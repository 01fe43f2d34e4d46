# onboarding_automation.parsers package
from .zendesk_parser import (
	extract_profile,
	extract_profiles,
	format_manager,
	classify_employee_type,
	generate_username,
	truncate_department,
)
from .hires_csv import (
	COLUMNS,
	HiresCsvError,
	read_hires,
	write_hires,
)

__all__ = [
	"extract_profile",
	"extract_profiles",
	"format_manager",
	"classify_employee_type",
	"generate_username",
	"truncate_department",
	"COLUMNS",
	"HiresCsvError",
	"read_hires",
	"write_hires",
]
