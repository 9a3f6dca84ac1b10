from datetime import datetime
import platform


def start_audit(type_of_plate: str, well_count: int) -> list[str]:
    return [
        f"Session start: {datetime.now().isoformat()}",
        f"Platform: {platform.platform()}",
        f"Plate layout: {type_of_plate} ({well_count} wells)",
    ]


def log_step(audit: list[str], msg: str):
    audit.append(f"{datetime.now().isoformat(timespec='seconds')} {msg}")
