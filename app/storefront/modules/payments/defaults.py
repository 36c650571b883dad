"""
Built-in payment method catalogue. Saved rows are merged onto these by code.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogEntry:
    kind: str
    code: str
    name: str
    image: str
    symbol: str | None = None


CRYPTO_WALLETS: tuple[CatalogEntry, ...] = (
    CatalogEntry("crypto", "btc", "Bitcoin", "crypto/BTC.svg", "BTC"),
    CatalogEntry("crypto", "eth", "Ethereum", "crypto/ETH.svg", "ETH"),
    CatalogEntry("crypto", "usdt", "Tether", "crypto/USDT.svg", "USDT"),
    CatalogEntry("crypto", "ltc", "Litecoin", "crypto/LTC.svg", "LTC"),
    CatalogEntry("crypto", "sol", "Solana", "crypto/SOL.svg", "SOL"),
    CatalogEntry("crypto", "doge", "Dogecoin", "crypto/DOGE.svg", "DOGE"),
    CatalogEntry("crypto", "usdc", "USD Coin", "crypto/USDC.svg", "USDC"),
    CatalogEntry("crypto", "xrp", "Ripple", "crypto/XPR.svg", "XPR"),
)

P2P_PAYMENTS: tuple[CatalogEntry, ...] = (
    CatalogEntry("p2p", "venmo", "Venmo", "digital-assets/venmo.png"),
    CatalogEntry("p2p", "cashapp", "Cash App", "digital-assets/cashapp.webp"),
    CatalogEntry("p2p", "paypal", "PayPal", "digital-assets/paypal.jpg"),
    CatalogEntry("p2p", "zelle", "Zelle", "digital-assets/zelle.png"),
)

SQUARE_PAYMENTS: tuple[CatalogEntry, ...] = (
    CatalogEntry("square", "apple_pay", "Apple Pay", "digital-assets/apple-pay.png"),
    CatalogEntry("square", "steam_card", "Steam Card", "digital-assets/steam.png"),
    CatalogEntry("square", "razer_gold", "Razer Gold Card", "digital-assets/razer-gold.png"),
    CatalogEntry("square", "amazon", "Amazon", "digital-assets/amazon.png"),
)

CATALOGUE: dict[str, tuple[CatalogEntry, ...]] = {
    "crypto": CRYPTO_WALLETS,
    "p2p": P2P_PAYMENTS,
    "square": SQUARE_PAYMENTS,
}

BANK_FIELDS = ("bank_name", "account_name", "account_number", "routing_number", "swift_code", "iban")


def catalog_entry(kind: str, code: str) -> CatalogEntry | None:
    for entry in CATALOGUE.get(kind, ()):
        if entry.code == code:
            return entry
    return None
