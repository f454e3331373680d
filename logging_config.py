"""Console logging for the service, with contact identifiers masked."""
import logging
import logging.config
import re
from collections.abc import Mapping

# Keeps the first character of the local part and the domain.
EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
# Keeps the last two digits.
PHONE_RE = re.compile(r"\+?\d[\d\s().-]{4,}(\d{2})\b")


def mask_contact_details(text: str) -> str:
    text = EMAIL_RE.sub(r"\1***@\2", text)
    return PHONE_RE.sub(r"***\1", text)


def _mask(value):
    return mask_contact_details(value) if isinstance(value, str) else value


class ContactMaskingFilter(logging.Filter):
    """Masks emails and phone numbers in a record's message and string args.

    Non-string args such as contact ids pass through untouched.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = _mask(record.msg)
        if isinstance(record.args, Mapping):
            record.args = {key: _mask(value) for key, value in record.args.items()}
        elif record.args:
            record.args = tuple(_mask(arg) for arg in record.args)
        return True


def setup_logging() -> None:
    from config import get_settings

    level = get_settings().log_level.upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"mask_contacts": {"()": ContactMaskingFilter}},
            "formatters": {
                "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                    "filters": ["mask_contacts"],
                },
            },
            "root": {"level": level, "handlers": ["stderr"]},
            # uvicorn installs its own handlers; route its records through ours.
            "loggers": {
                name: {"handlers": [], "propagate": True}
                for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
            },
        }
    )
