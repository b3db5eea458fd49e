"""SmartOffice Sync: scheduled synchronization of reference data into Azure Cosmos DB."""

__version__ = "0.1.0"
__author__ = "SmartOffice Team"

__all__ = ["__version__", "__author__"]
