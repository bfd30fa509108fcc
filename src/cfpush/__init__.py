"""cfpush - delta upload of application bits to a Cloud Foundry-style control plane.

Fingerprints an application artifact (exploded directory or zip/war/jar),
asks the platform which files it already holds, and streams a zip of only
the missing files.
"""

__version__ = "0.1.0"
