from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class TorrentFilter(StrEnum):
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"
    RESUMED = "resumed"
    PAUSED = "paused"
    STOPPED = "stopped"
    STALLED = "stalled"
    UPLOADING = "uploading"
    STALLED_UPLOADING = "stalled_uploading"
    DOWNLOADING = "downloading"
    STALLED_DOWNLOADING = "stalled_downloading"
    ERRORED = "errored"


class TorrentState(StrEnum):
    ERROR = "error"
    MISSING_FILES = "missingFiles"
    UPLOADING = "uploading"
    PAUSED_UP = "pausedUP"
    STOPPED_UP = "stoppedUP"
    QUEUED_UP = "queuedUP"
    STALLED_UP = "stalledUP"
    CHECKING_UP = "checkingUP"
    FORCED_UP = "forcedUP"
    ALLOCATING = "allocating"
    DOWNLOADING = "downloading"
    META_DL = "metaDL"
    PAUSED_DL = "pausedDL"
    STOPPED_DL = "stoppedDL"
    QUEUED_DL = "queuedDL"
    STALLED_DL = "stalledDL"
    CHECKING_DL = "checkingDL"
    FORCED_DL = "forcedDL"
    CHECKING_RESUME_DATA = "checkingResumeData"
    MOVING = "moving"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TorrentFilterOptions:
    """
    Optional criteria narrowing a torrents/info query.

    Unset fields (None, empty, zero or False) are not sent at all.
    """

    filter: TorrentFilter | None = None
    category: str = ""
    tag: str = ""
    sort: str = ""
    reverse: bool = False
    limit: int = 0
    offset: int = 0
    hashes: tuple[str, ...] = field(default_factory=tuple)
    # WebUI API 2.11.4+ (qBittorrent 5.1)
    include_trackers: bool = False

    def to_query(self) -> dict[str, Any]:
        """
        Map the set criteria onto qbittorrentapi's torrents_info keywords.

        Returns:
            dict: keyword arguments for Client.torrents_info
        """
        query: dict[str, Any] = {}
        if self.reverse:
            query["reverse"] = True
        if self.limit > 0:
            query["limit"] = self.limit
        if self.offset > 0:
            query["offset"] = self.offset
        if self.sort:
            query["sort"] = self.sort
        if self.filter:
            query["status_filter"] = str(self.filter)
        if self.category:
            query["category"] = self.category
        if self.tag:
            query["tag"] = self.tag
        if self.hashes:
            query["torrent_hashes"] = "|".join(self.hashes)
        if self.include_trackers:
            query["include_trackers"] = True
        return query
