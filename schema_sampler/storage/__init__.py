# ==============================================
# STORAGE (MongoDB)
# ==============================================
#
# The data service the sampling pipeline counts and samples through.
#
# Modules:
# --------
# - mongo_client.py    → MongoDB connection, count() and sample()
#
# ==============================================

from .mongo_client import MongoClient, NotConnected

__all__ = ["MongoClient", "NotConnected"]
