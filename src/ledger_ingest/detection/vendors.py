from dataclasses import dataclass

DROPI = "dropi"


@dataclass(frozen=True)
class VendorSignature:
    vendor_id: str
    markers: tuple[str, ...]

    def matches(self, content: str) -> bool:
        lowered = content.lower()
        return any(marker in lowered for marker in self.markers)


KNOWN_VENDORS: tuple[VendorSignature, ...] = (
    VendorSignature(
        vendor_id=DROPI,
        markers=("dropi", "recarga topup", "movimientos y transacciones"),
    ),
)


def match_vendor(content: str) -> VendorSignature | None:
    for signature in KNOWN_VENDORS:
        if signature.matches(content):
            return signature
    return None
