import logging
import os
import sys

def setup_logging():
    """Configures logging for paranoid-guard."""
    logger = logging.getLogger("ParanoidGuard")
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    # Console Handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    # File Handler, only when an audit file is requested
    audit_path = str(os.environ.get("PARANOID_AUDIT_LOG", "")).strip()
    if audit_path:
        fh = logging.FileHandler(audit_path)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger

logger = setup_logging()

def audit(action, details, status="ALLOWED"):
    """Logs an action to the audit log."""
    logger.info(f"[{status}] {action}: {details}")

def is_truthy(value):
    return str(value).strip().lower() in ("true", "1", "yes", "on")
