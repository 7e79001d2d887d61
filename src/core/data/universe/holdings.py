"""Hardcoded top holdings per index proxy — used when the live holdings API is unavailable."""
from src.core.data.models import EtfHolding

STATIC_HOLDINGS: dict[str, list[tuple[str, str]]] = {
    "SPY": [
        ("AAPL", "Apple Inc."), ("MSFT", "Microsoft Corp."), ("NVDA", "NVIDIA Corp."),
        ("AMZN", "Amazon.com Inc."), ("META", "Meta Platforms Inc."), ("GOOGL", "Alphabet Inc. Class A"),
        ("BRK.B", "Berkshire Hathaway Inc. Class B"), ("GOOG", "Alphabet Inc. Class C"),
        ("AVGO", "Broadcom Inc."), ("TSLA", "Tesla Inc."), ("JPM", "JPMorgan Chase & Co."),
        ("LLY", "Eli Lilly and Co."), ("UNH", "UnitedHealth Group Inc."), ("V", "Visa Inc."),
        ("XOM", "Exxon Mobil Corp."), ("MA", "Mastercard Inc."), ("JNJ", "Johnson & Johnson"),
        ("PG", "Procter & Gamble Co."), ("HD", "Home Depot Inc."), ("COST", "Costco Wholesale Corp."),
    ],
    "QQQ": [
        ("AAPL", "Apple Inc."), ("MSFT", "Microsoft Corp."), ("NVDA", "NVIDIA Corp."),
        ("AMZN", "Amazon.com Inc."), ("AVGO", "Broadcom Inc."), ("META", "Meta Platforms Inc."),
        ("TSLA", "Tesla Inc."), ("COST", "Costco Wholesale Corp."), ("GOOGL", "Alphabet Inc. Class A"),
        ("GOOG", "Alphabet Inc. Class C"), ("NFLX", "Netflix Inc."), ("AMD", "Advanced Micro Devices Inc."),
        ("PEP", "PepsiCo Inc."), ("ADBE", "Adobe Inc."), ("CSCO", "Cisco Systems Inc."),
        ("QCOM", "Qualcomm Inc."), ("INTU", "Intuit Inc."), ("AMAT", "Applied Materials Inc."),
        ("CMCSA", "Comcast Corp."), ("INTC", "Intel Corp."),
    ],
    "DIA": [
        ("UNH", "UnitedHealth Group Inc."), ("GS", "Goldman Sachs Group Inc."), ("MSFT", "Microsoft Corp."),
        ("HD", "Home Depot Inc."), ("CAT", "Caterpillar Inc."), ("AMGN", "Amgen Inc."),
        ("MCD", "McDonald's Corp."), ("V", "Visa Inc."), ("CRM", "Salesforce Inc."),
        ("AXP", "American Express Co."), ("TRV", "Travelers Companies Inc."), ("AAPL", "Apple Inc."),
        ("JPM", "JPMorgan Chase & Co."), ("IBM", "International Business Machines Corp."),
        ("HON", "Honeywell International Inc."), ("AMZN", "Amazon.com Inc."), ("PG", "Procter & Gamble Co."),
        ("JNJ", "Johnson & Johnson"), ("BA", "Boeing Co."), ("CVX", "Chevron Corp."),
    ],
    "IWM": [
        ("FTAI", "FTAI Aviation Ltd."), ("INSM", "Insmed Inc."), ("SFM", "Sprouts Farmers Market Inc."),
        ("PCVX", "Vaxcyte Inc."), ("FN", "Fabrinet"), ("CRDO", "Credo Technology Group Holding Ltd."),
        ("ENSG", "Ensign Group Inc."), ("AIT", "Applied Industrial Technologies Inc."),
        ("HQY", "HealthEquity Inc."), ("CVLT", "Commvault Systems Inc."), ("FLR", "Fluor Corp."),
        ("MLI", "Mueller Industries Inc."), ("UFPI", "UFP Industries Inc."), ("SSB", "SouthState Corp."),
        ("EXLS", "ExlService Holdings Inc."), ("CORT", "Corcept Therapeutics Inc."),
        ("HLNE", "Hamilton Lane Inc."), ("CSWI", "CSW Industrials Inc."), ("CHE", "Chemed Corp."),
        ("HALO", "Halozyme Therapeutics Inc."),
    ],
}


def static_holdings(etf: str) -> list[EtfHolding]:
    """Bundled holdings for ``etf`` in fund order; empty for unknown funds."""
    return [EtfHolding(symbol=s, name=n) for s, n in STATIC_HOLDINGS.get(etf.strip().upper(), [])]
