"""
messages.py — Alert text rendered for SMS / WhatsApp recipients.

The template is fixed so the same disaster always renders the same text:

    🚨 URGENT: FLOOD ALERT 🚨
    Location: Chennai, Tambaram
    Severity: Level 4
    Water level crossed danger mark at Adyar bridge.

    Safety Instructions:
    - Move to higher ground
    - Avoid walking through water
    - Listen to local authorities

    Stay tuned for updates and follow official instructions.
    Track live updates: https://.../dashboard/flood
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from prism.app.core.config import settings
from prism.app.storage.models import Disaster, DisasterType

SAFETY_INSTRUCTIONS: Dict[str, str] = {
    DisasterType.CYCLONE.value: (
        "- Stay indoors and away from windows\n"
        "- Keep emergency kit ready\n"
        "- Follow evacuation orders"
    ),
    DisasterType.FLOOD.value: (
        "- Move to higher ground\n"
        "- Avoid walking through water\n"
        "- Listen to local authorities"
    ),
    DisasterType.EARTHQUAKE.value: (
        "- Drop, Cover, and Hold On\n"
        "- Stay away from windows\n"
        "- Be prepared for aftershocks"
    ),
    DisasterType.STORM.value: (
        "- Seek sturdy shelter\n"
        "- Stay away from trees and power lines\n"
        "- Keep emergency supplies handy"
    ),
    DisasterType.HEATWAVE.value: (
        "- Stay indoors during peak afternoon hours\n"
        "- Drink water frequently\n"
        "- Check on elderly neighbours"
    ),
}

GENERIC_INSTRUCTION = "Follow local authority instructions and stay safe."


def safety_instructions_for(disaster_type: Union[DisasterType, str]) -> str:
    key = disaster_type.value if isinstance(disaster_type, DisasterType) else str(disaster_type)
    return SAFETY_INSTRUCTIONS.get(key, GENERIC_INSTRUCTION)


def render_alert_message(disaster: Disaster, *, app_url: Optional[str] = None) -> str:
    """Deterministic alert body for one disaster."""
    hazard = disaster.type.value if isinstance(disaster.type, DisasterType) else str(disaster.type)
    base_url = (app_url or settings.APP_URL).rstrip("/")

    return (
        f"🚨 URGENT: {hazard.upper()} ALERT 🚨\n"
        f"Location: {', '.join(disaster.affected_areas)}\n"
        f"Severity: Level {disaster.severity}\n"
        f"{disaster.description}\n"
        f"\n"
        f"Safety Instructions:\n"
        f"{safety_instructions_for(hazard)}\n"
        f"\n"
        f"Stay tuned for updates and follow official instructions.\n"
        f"Track live updates: {base_url}/dashboard/{hazard}"
    )
