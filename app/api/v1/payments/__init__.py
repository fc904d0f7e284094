"""Payment confirmation and webhook reconciliation"""
