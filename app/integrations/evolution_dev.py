"""
File-based message sink for dev/test.

Drop-in replacement for evolution.send_message: writes .txt files instead of
calling the gateway. Files are grouped by send_id (the queue entry type) so
delivery, sale and ticket notifications can be inspected separately.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path

from app.config import settings
from app.integrations.evolution import normalize_phone

logger = logging.getLogger(__name__)


def send_message(phone: str, text: str, send_id: str | None = None) -> bool:
    """
    Append a WhatsApp message to {output_dir}/{send_id or _ungrouped}/{phone}.txt
    """
    if not phone:
        logger.warning("dev send_message called with empty phone. Skipping.")
        return False

    phone = normalize_phone(phone)
    now = datetime.now(timezone.utc)

    folder = Path(settings.evolution_dev_output_dir) / (send_id or "_ungrouped")
    folder.mkdir(parents=True, exist_ok=True)
    file_path = folder / f"{phone}.txt"

    envelope = f"TO: {phone}\nAT: {now.isoformat()}\n---\n{text}\n"
    if file_path.exists():
        envelope = f"\n---\n{envelope}"

    with open(file_path, "a", encoding="utf-8") as f:
        f.write(envelope)

    logger.info("dev send_message → %s", file_path)
    return True
