__all__ = [
	"DirectoryService", "DirectoryLookup", "DirectoryEntry", "DirectoryError",
	"ZendeskService", "ZendeskError", "ActiveDirectoryService",
	"GamDirectoryLookup", "GamError", "MailService",
]

from .base import DirectoryService, DirectoryLookup, DirectoryEntry, DirectoryError
from .zendesk import ZendeskService, ZendeskError
from .active_directory import ActiveDirectoryService
from .google import GamDirectoryLookup, GamError
from .mail import MailService
