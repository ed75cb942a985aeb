"""Core module - shared infrastructure for the folder sync service.

Logging with correlation IDs, token encryption and document storage. Nothing
here knows about SharePoint or the pending item lifecycle; that lives in
/folder_sync/ and /connectors/.
"""

__version__ = "1.0.0"
