from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

Theme = Literal["light", "dark", "system"]
FontSize = Literal["small", "medium", "large", "extraLarge"]
Density = Literal["compact", "comfortable", "spacious"]
AnimationPreference = Literal["enabled", "disabled", "system"]


class AppSettings(BaseModel):
    """
    Typed view over the settings table.

    Each field is stored as one row whose value is the JSON encoding of the
    field; missing or unreadable rows fall back to the defaults below.
    """
    # General
    showFloatingWidget: bool = True
    enableNotifications: bool = True
    enableSoundFeedback: bool = True

    # Idle detection
    enableIdleDetection: bool = True
    idleThresholdMinutes: int = Field(default=5, ge=1)

    # Pomodoro
    pomodoroEnabled: bool = False
    pomodoroWorkMinutes: int = Field(default=25, ge=1)
    pomodoroBreakMinutes: int = Field(default=5, ge=1)

    # Appearance
    theme: Theme = "system"
    fontSize: FontSize = "medium"
    density: Density = "comfortable"
    animationPreference: AnimationPreference = "system"

    # Business details printed on invoices
    businessName: str = ""
    businessAddress: str = ""
    businessEmail: str = ""
    businessPhone: str = ""
    businessVatNumber: str = ""
    businessLogo: Optional[str] = None
    defaultTaxRate: Decimal = Field(default=Decimal("0"), ge=0)
    paymentTerms: str = "Payment is due within 30 days of invoice date."
    paymentLink: str = ""
    paymentLinkTitle: str = "Payment Link 1"
    paymentLink2: str = ""
    paymentLink2Title: str = "Payment Link 2"
