"""CampusVoice: a small newsletter site with an authenticated authoring area."""

__version__ = "0.1.0"
