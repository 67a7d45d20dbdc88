"""
EDITLAB identity strings shared by the CLI and the package metadata.
"""

__codename__ = "EDITLAB"
__tagline__ = "Change it. Check it. Take it back."
__version__ = "0.3.0"

BANNER = r"""
  ___ ___ ___ _____ _      _   ___
 | __|   \_ _|_   _| |    /_\ | _ )
 | _|| |) | |  | | | |__ / _ \| _ \
 |___|___/___| |_| |____/_/ \_\___/
"""
