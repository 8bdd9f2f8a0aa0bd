"""
RequestDispatcher - Resolves image requests from the cache or the renderer.

Key behaviors:
- Unregistered types fail locally without touching the renderer
- Cache hits are delivered at once; the caller is only notified if the
  cached file differs from the one it already shows
- Identical requests made while a render is pending share that render
- Every waiter of a render is notified exactly once
- A zero width or height is derived from the type's recorded full-size
  aspect ratio, or the configured default ratio
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from src.core.entities import (
    CachedArtifact,
    CacheKey,
    ErrorCode,
    ImageTypeDescriptor,
    PixelSize,
    RenderError,
    RenderResult,
)
from src.core.ports.storage import ArtifactStorePort
from src.core.ports.time import ClockPort
from src.core.services.command_builder import CommandBuilder, parse_image_type
from src.core.services.command_queue import CommandQueue
from src.core.services.image_cache import ImageCache
from src.core.services.progress import ProgressTracker

logger = logging.getLogger(__name__)

ResultCallback = Callable[[RenderResult], None]


@dataclass(frozen=True)
class DispatcherConfig:
    default_aspect_ratio: float = 0.5
    image_suffix: str = ".png"


DEFAULT_DISPATCHER_CONFIG = DispatcherConfig()


class RequestDispatcher:
    """
    Image request path.

    `on_image(caller, fname)` and `on_error(error)` are the outbound
    notifications; the owner forwards them as generator events.
    """

    def __init__(
        self,
        queue: CommandQueue,
        cache: ImageCache,
        builder: CommandBuilder,
        store: ArtifactStorePort,
        clock: ClockPort,
        progress: ProgressTracker,
        on_image: Callable[[int, str], None],
        on_error: Callable[[RenderError], None],
        config: DispatcherConfig | None = None,
    ) -> None:
        self._queue = queue
        self._cache = cache
        self._builder = builder
        self._store = store
        self._clock = clock
        self._progress = progress
        self._on_image = on_image
        self._on_error = on_error
        self._config = config or DEFAULT_DISPATCHER_CONFIG

        self._types: dict[str, ImageTypeDescriptor] = {}
        self._pending: dict[CacheKey, list[ResultCallback]] = {}
        # Bumped when types are dropped; stale renders are not cached
        self._generation = 0

    # --- Image types ---

    def register(self, type_name: str, command_json: str) -> ImageTypeDescriptor:
        descriptor = parse_image_type(type_name, command_json)
        previous = self._types.get(type_name)
        if previous is not None and previous.full_image_pixel_size is not None:
            descriptor.full_image_pixel_size = previous.full_image_pixel_size
        self._types[type_name] = descriptor
        logger.debug("Registered image type %s", type_name)
        return descriptor

    def is_registered(self, type_name: str) -> bool:
        return type_name in self._types

    def type_names(self) -> list[str]:
        """Registered type names in registration order."""
        return list(self._types)

    def descriptor(self, type_name: str) -> ImageTypeDescriptor | None:
        return self._types.get(type_name)

    def drop_all(self) -> None:
        self._types.clear()
        self._cache.drop_all()
        # In-flight renders still answer their waiters; new requests render afresh
        self._pending = {}
        self._generation += 1
        logger.info("Dropped all image types and cached images")

    @property
    def pending_keys(self) -> list[CacheKey]:
        return list(self._pending)

    # --- Keys ---

    def resolve_size(self, descriptor: ImageTypeDescriptor, size: PixelSize) -> PixelSize:
        if size.width > 0 and size.height > 0:
            return size
        if size.width <= 0 and size.height <= 0:
            raise ValueError(f"Image size {size} has no usable dimension")

        recorded = descriptor.full_image_pixel_size
        if recorded is not None and recorded.width > 0 and recorded.height > 0:
            ratio = recorded.aspect_ratio
        else:
            ratio = self._config.default_aspect_ratio

        if size.height <= 0:
            return PixelSize(size.width, max(1, round(size.width * ratio)))
        return PixelSize(max(1, round(size.height / ratio)), size.height)

    def make_key(
        self,
        descriptor: ImageTypeDescriptor,
        from_timestamp: float,
        duration: float,
        size: PixelSize,
        full_size: bool,
    ) -> CacheKey:
        resolved = self.resolve_size(descriptor, size)
        return CacheKey(
            type_name=descriptor.type_name,
            from_timestamp=float(from_timestamp),
            duration=float(duration),
            width=resolved.width,
            height=resolved.height,
            full_size=bool(full_size),
        )

    # --- Requests ---

    def request(
        self,
        type_name: str,
        from_timestamp: float,
        duration: float,
        size: PixelSize,
        full_size: bool,
        on_result: ResultCallback,
        *,
        track_progress: bool = True,
    ) -> CacheKey | None:
        """
        Resolve one image request and deliver its RenderResult to `on_result`.

        Returns the cache key, or None if the type is not registered.
        """
        descriptor = self._types.get(type_name)
        if descriptor is None:
            error = RenderError(ErrorCode.UNREGISTERED_TYPE, f"Image type not registered: {type_name}")
            logger.warning(error.message)
            self._on_error(error)
            on_result(RenderResult(success=False, error=error))
            return None

        key = self.make_key(descriptor, from_timestamp, duration, size, full_size)

        cached = self._cache.lookup(key, self._clock.now())
        if cached is not None:
            on_result(RenderResult.ok(cached.file_path, cached.pixel_size))
            return key

        waiters = self._pending.get(key)
        if waiters is not None:
            logger.debug("Coalescing request for %s", key)
            waiters.append(on_result)
            return key

        waiters = [on_result]
        self._pending[key] = waiters
        output_path = self._store.allocate(self._config.image_suffix)
        command = self._builder.build(descriptor, key, output_path)
        generation = self._generation

        if track_progress:
            self._progress.expect()

        def finished(result: RenderResult) -> None:
            self._finished(key, waiters, output_path, generation, track_progress, result)

        self._queue.enqueue(command, finished, output_path=output_path)
        return key

    def _finished(
        self,
        key: CacheKey,
        waiters: list[ResultCallback],
        output_path: str,
        generation: int,
        tracked: bool,
        result: RenderResult,
    ) -> None:
        if self._pending.get(key) is waiters:
            del self._pending[key]

        if result.success:
            if generation == self._generation:
                self._cache.insert(
                    CachedArtifact(
                        key=key,
                        file_path=output_path,
                        pixel_size=result.pixel_size,
                        created_at=self._clock.now(),
                    )
                )
                current = self._types.get(key.type_name)
                if current is not None and key.full_size and result.pixel_size is not None:
                    current.full_image_pixel_size = result.pixel_size
            else:
                logger.debug("Image for dropped type %s not cached", key.type_name)
        else:
            self._store.delete(output_path)

        if tracked:
            self._progress.complete()

        for waiter in waiters:
            waiter(result)

    def get_image(
        self,
        caller: int,
        type_name: str,
        from_timestamp: float,
        duration: float,
        size: PixelSize,
        full_size: bool,
        current_fname: str = "",
    ) -> CacheKey | None:
        """Request an image for `caller`; notifies via `on_image` when ready."""

        def deliver(result: RenderResult) -> None:
            if not result.success or result.file_path is None:
                return
            if result.file_path == current_fname:
                return
            self._on_image(caller, result.file_path)

        return self.request(type_name, from_timestamp, duration, size, full_size, deliver)

    def check_cache(self) -> int:
        return self._cache.evict_expired(self._clock.now())
