import os

# ===== drive layout =====
MAIN_FOLDER = "ESS Main Folder"
INDIVIDUALS_FOLDER = "Individuals"
EVENTS_FOLDER = "1. Events (OTH) - Quotations x Timesheet x Invoice x Payout"
AVAILABILITY_FOLDER = "Availability"
ROSTERING_FOLDER = "Rostering"
TIMESHEET_FOLDER = "Timesheet"
YEAR_FOLDER_FMT = "ESS {year}"

# ===== workbook names =====
MASTER_FILE = "Event Crew"
MASTER_SHEET = "Sheet1"
YEARLY_AVAILABILITY_FILE = "Yearly Availability"
YEARLY_ROSTER_FILE = "Yearly Roster Mastersheet"
TIMESHEET_FILE_FMT = "{event_id}_Timesheet"
TIMESHEET_SHEET = "Sheet1"
ERROR_LOG_FILE = "Error Log"
ERROR_LOG_SHEET = "Error Log"
JOBS_SHEET = "_Jobs"      # hidden sheet backing the checkpoint store

# ===== header labels =====
HDR_EVENT_ID = "Event ID"
HDR_ROLE = "Rostered Role"
HDR_AVAILABILITY = "Availability"
HDR_ESS_ID = "ESS ID"
HDR_NAME = "Name"
HDR_SERIAL_NO = "ESS Serial No."
HDR_NO = "No."
HDR_ROLE_SHORT = "Role"
HDR_DATE = "Date"
NOT_AVAILABLE = "Not Available"
PARTIAL_AVAILABILITY = ("till 3pm", "after 3pm")
ROSTER_DAY_BLOCK = 5

# ===== local time =====
TIMEZONE = os.environ.get("ESS_TIMEZONE", "Asia/Singapore")   # "today", month tabs and year end

# ===== monthly rollover =====
NEXT_MONTH_AFTER_DAY = 10   # next month's sheet appears after the 10th

# ===== job budget / continuations =====
JOB_BUDGET_MS = int(os.environ.get("ESS_JOB_BUDGET_MS", "240000"))
CONTINUATION_DELAY_MS = int(os.environ.get("ESS_CONTINUATION_DELAY_MS", "120000"))
CHECKPOINT_TTL_SEC = int(os.environ.get("ESS_CHECKPOINT_TTL_SEC", "3600"))
LEASE_TTL_SEC = int(os.environ.get("ESS_LEASE_TTL_SEC", "360"))

# ===== quotas =====
RETRY_ATTEMPTS = 5
RETRY_BACKOFF = 0.8
