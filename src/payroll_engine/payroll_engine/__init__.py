"""Attendance-to-payroll engine package.

Organized by feature modules (attendance, payroll, signatures, sync, ...)
with a thin Flask controller layer over service/repository layers. Money is
carried as integer minor units (cents/paise) end to end.
"""
