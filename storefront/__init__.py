"""API boutique: catalogue, commandes et réconciliation des paiements ZarinPal."""

__version__ = "1.0.0"
