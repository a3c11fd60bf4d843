from timetracker.models.customer import Customer
from timetracker.models.daily_login_tracker import DailyLoginTracker
from timetracker.models.organization import Organization, UserOrganization
from timetracker.models.process import Activity, Process
from timetracker.models.time_entry import TimeEntry
from timetracker.models.user import User

__all__ = [
    "Activity",
    "Customer",
    "DailyLoginTracker",
    "Organization",
    "Process",
    "TimeEntry",
    "User",
    "UserOrganization",
]
