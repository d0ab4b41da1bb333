"""Launch Steam games with extra programs in their Proton prefix via protonhax."""

__version__ = "0.1.0"
