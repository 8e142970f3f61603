"""
Diagnostic session service.

Each client address gets a randomly damaged subsystem on a status check and
can later collect the repair code for it. Sessions live in memory for the
lifetime of the service instance.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, Optional

log = logging.getLogger("repairbay")

# --- Fault Catalog ---
SYSTEM_CODES: Dict[str, str] = {
    "navigation": "NAV-01",
    "communications": "COM-02",
    "life_support": "LIFE-03",
    "engines": "ENG-04",
    "deflector_shield": "SHLD-05",
}

REPAIR_BAY_HTML = """<!DOCTYPE html>
<html>
<head><title>Repair</title></head>
<body>
  <div class="anchor-point">{code}</div>
</body>
</html>
"""


# --- Errors ---
class RepairBayError(Exception):
    status_code = 500
    message = "Repair bay failure."

    def __init__(self):
        super().__init__(self.message)


class NoDamagedSystem(RepairBayError):
    """Client has not run a status check yet."""
    status_code = 404
    message = "No damaged system found for this client. Please GET /status first."


class InvalidDamagedSystem(RepairBayError):
    """Stored fault is missing from the catalog."""
    status_code = 500
    message = "Invalid damaged system stored."


# --- Sessions ---
@dataclass
class ClientSession:
    damaged_system: Optional[str] = None


class DiagnosticService:
    """Assigns damaged systems per client address and hands out repair codes.

    ``rng`` only needs a ``choice`` method; pass a seeded ``random.Random``
    to make assignments reproducible.
    """

    def __init__(self, rng=None):
        self.codes = SYSTEM_CODES
        self.systems = list(self.codes)
        self.rng = rng or random.Random()
        self.sessions: Dict[str, ClientSession] = {}

    def random_system(self) -> str:
        return self.rng.choice(self.systems)

    def check_status(self, client_ip: str) -> Dict[str, str]:
        damaged = self.random_system()
        # Replace the whole entry so readers never see a partial session
        self.sessions[client_ip] = ClientSession(damaged_system=damaged)
        log.info("assigned damaged system %s to %s", damaged, client_ip or "-")
        return {"damaged_system": damaged}

    def repair_code(self, client_ip: str) -> str:
        session = self.sessions.get(client_ip)
        if session is None or not session.damaged_system:
            log.warning("repair code requested before status check by %s", client_ip or "-")
            raise NoDamagedSystem()
        code = self.codes.get(session.damaged_system)
        if code is None:
            log.error("session for %s holds unknown system %r", client_ip or "-", session.damaged_system)
            raise InvalidDamagedSystem()
        return code

    def repair_bay_page(self, client_ip: str) -> str:
        """Render the repair code inside the anchor-point div."""
        code = self.repair_code(client_ip)
        log.debug("serving repair code %s to %s", code, client_ip or "-")
        return REPAIR_BAY_HTML.format(code=code)
