import os
from pathlib import Path

import yaml

from .errors import InvalidPolicyInput
from .policy import AddressPolicy
from .utils import audit, is_truthy

DEFAULT_POLICY_FILENAME = "paranoid.yaml"
POLICY_SECTION = "egress"


def _resolve_policy_path(path=None):
    raw = path or os.environ.get("PARANOID_POLICY_PATH") or DEFAULT_POLICY_FILENAME
    candidate = Path(raw).expanduser()
    if candidate.is_absolute():
        return candidate
    return Path.cwd() / candidate


def _read_policy_raw(path):
    # Priority 1: policy passed directly via environment variable.
    env_policy = os.environ.get("PARANOID_POLICY_CONTENT")
    if env_policy:
        audit("LOAD_POLICY", "Loading policy from environment variable", "INFO")
        return env_policy, "env"

    # Priority 2: policy file.
    with open(path, "r", encoding="utf-8") as f:
        return f.read(), "file"


def load_policy_mapping(path=None):
    """Return the ``egress`` mapping of the policy document, or {} when no
    policy file exists."""
    policy_path = _resolve_policy_path(path)
    try:
        raw, source = _read_policy_raw(policy_path)
    except FileNotFoundError:
        audit("LOAD_POLICY", f"Policy file not found: {policy_path}, using defaults", "ERROR")
        return {}

    try:
        loaded = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        where = "env var" if source == "env" else f"policy file at {policy_path}"
        audit("LOAD_POLICY", f"Invalid policy in {where}: {e}", "ERROR")
        raise InvalidPolicyInput(f"Invalid policy in {where}: {e}") from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise InvalidPolicyInput(
            f"Policy document must be a mapping, got {type(loaded).__name__}"
        )
    section = loaded.get(POLICY_SECTION, loaded)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise InvalidPolicyInput(
            f"'{POLICY_SECTION}' section must be a mapping, got {type(section).__name__}"
        )
    return section


def _env_overrides():
    overrides = {}
    failure_mode = os.environ.get("PARANOID_FAILURE_MODE")
    if failure_mode:
        overrides["failure_mode"] = failure_mode
    detect_local = os.environ.get("PARANOID_DETECT_LOCAL_ADDRESSES")
    if detect_local is not None and detect_local.strip():
        overrides["detect_local_addresses"] = is_truthy(detect_local)
    return overrides


def load_policy(path=None, **overrides):
    """Build an ``AddressPolicy`` from YAML config and environment overrides.

    Explicit keyword overrides win over the environment, which wins over the
    file.
    """
    mapping = load_policy_mapping(path)
    options = _env_overrides()
    options.update(overrides)
    policy = AddressPolicy.from_mapping(mapping, **options)
    audit("LOAD_POLICY", repr(policy), "INFO")
    return policy
