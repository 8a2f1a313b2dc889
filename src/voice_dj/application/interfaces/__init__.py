"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from voice_dj.application.interfaces.audio_engine import AudioEngine, FinishedCallback
from voice_dj.application.interfaces.channel_membership import ChannelMembership
from voice_dj.application.interfaces.chat_notifier import ChatNotifier
from voice_dj.application.interfaces.track_downloader import DownloadedAudio, TrackDownloader
from voice_dj.application.interfaces.track_resolver import TrackResolver

__all__ = [
    "AudioEngine",
    "FinishedCallback",
    "ChannelMembership",
    "ChatNotifier",
    "DownloadedAudio",
    "TrackDownloader",
    "TrackResolver",
]
