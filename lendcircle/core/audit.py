from datetime import datetime
from lendcircle.core.config import LOGS_DIR


def write_audit_log(user_name: str, user_role: str, action: str, details: str = ""):
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    month_str = datetime.now().strftime("%Y_%m")
    log_file = LOGS_DIR / f"audit_{month_str}.log"
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(f"{ts} | {user_role} | {user_name} | {action} | {details}\n")


def audit(user, action: str, details: str = ""):
    """Write an audit line for an authenticated profile."""
    user_name = (user.full_name or "").strip() or user.email
    user_role = user.role.value if user.role else "member"
    write_audit_log(user_name=user_name, user_role=user_role, action=action, details=details)
