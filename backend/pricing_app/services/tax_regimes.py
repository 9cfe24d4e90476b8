"""Named Brazilian tax regime presets, returned as TaxConfiguration values."""
from typing import Dict, List, Optional

from pricing_app.services.budget_types import TaxConfiguration, TaxRate


# regime -> ordered (name, rate %, jurisdiction)
_REGIMES: Dict[str, Dict] = {
    "lucro_presumido": {
        "label": "Lucro Presumido",
        "rates": [
            ("PIS", 0.65, "federal"),
            ("COFINS", 3.0, "federal"),
            ("CSLL", 9.0, "federal"),
            ("IRPJ", 15.0, "federal"),
            ("ICMS", 18.0, "state"),
            ("ISS", 5.0, "municipal"),
        ],
    },
    "lucro_real": {
        "label": "Lucro Real",
        "rates": [
            ("PIS", 1.65, "federal"),
            ("COFINS", 7.6, "federal"),
            ("CSLL", 9.0, "federal"),
            ("IRPJ", 15.0, "federal"),
            ("ICMS", 18.0, "state"),
            ("ISS", 5.0, "municipal"),
        ],
    },
    "simples_nacional": {
        # Annex III, first bracket: unified DAS rate
        "label": "Simples Nacional",
        "rates": [
            ("DAS", 6.0, "federal"),
        ],
    },
}


def list_regimes() -> List[Dict[str, str]]:
    return [{"regime": key, "label": cfg["label"]} for key, cfg in _REGIMES.items()]


def get_regime(regime: str) -> Optional[TaxConfiguration]:
    """Return the preset for ``regime`` or None when unknown."""
    cfg = _REGIMES.get(regime.strip().lower())
    if cfg is None:
        return None
    return TaxConfiguration(
        rates=tuple(TaxRate(name=n, rate=r, jurisdiction=j) for n, r, j in cfg["rates"]),
        name=cfg["label"],
    )
