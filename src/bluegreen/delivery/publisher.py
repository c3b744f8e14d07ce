"""Artifact publishing — build the image and make it available to the cluster."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import List, Sequence

from bluegreen.delivery.blue_green import Release
from bluegreen.errors import BuildError, PublishError

logger = logging.getLogger(__name__)


class ImageBuilder(ABC):
    """Produces a runnable image from a build context."""

    @abstractmethod
    def build(self, context: str, tags: Sequence[str], dockerfile: str = "Dockerfile") -> None:
        """Build ``context`` once, tagging the result with every tag."""


class ImageRegistry(ABC):
    """Publishes tagged images. Pushing the same tag twice overwrites it."""

    @abstractmethod
    def push(self, tag: str) -> None:
        """Push ``tag`` to its registry."""


class DockerCLI(ImageBuilder, ImageRegistry):
    """Builder and registry backed by the ``docker`` command line."""

    def __init__(self, executable: str = "docker", timeout_seconds: float = 1800.0) -> None:
        self.executable = executable
        self.timeout_seconds = timeout_seconds

    def _run(self, cmd: List[str]) -> None:
        logger.debug("Running %s", " ".join(cmd))
        subprocess.run(
            cmd, check=True, capture_output=True, text=True, timeout=self.timeout_seconds
        )

    def build(self, context: str, tags: Sequence[str], dockerfile: str = "Dockerfile") -> None:
        cmd = [self.executable, "build", "-f", dockerfile]
        for tag in tags:
            cmd += ["-t", tag]
        cmd.append(context)
        self._run(cmd)

    def push(self, tag: str) -> None:
        self._run([self.executable, "push", tag])


def _describe(exc: Exception) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        detail = (exc.stderr or "").strip().splitlines()
        return f"exit {exc.returncode}" + (f": {detail[-1]}" if detail else "")
    return str(exc)


class ArtifactPublisher:
    """Builds a release's image and publishes it under build- and color-tags.

    The returned reference is ``<repository>:<color>-<build_id>``; the image
    is also tagged ``<repository>:<build_id>``. Re-publishing the same
    build and color yields the same tags.
    """

    def __init__(
        self,
        builder: ImageBuilder,
        repository: str,
        registry: ImageRegistry | None = None,
        build_context: str = ".",
        dockerfile: str = "Dockerfile",
        push: bool = True,
    ) -> None:
        self.builder = builder
        self.registry = registry
        self.repository = repository
        self.build_context = build_context
        self.dockerfile = dockerfile
        self.push = push and registry is not None

    def tags_for(self, release: Release) -> list[str]:
        return [
            f"{self.repository}:{release.build_id}",
            f"{self.repository}:{release.target_color.value}-{release.build_id}",
        ]

    def publish(self, release: Release) -> str:
        """Build and (optionally) push; return the colored image reference.

        Raises:
            BuildError: The builder failed.
            PublishError: A registry push failed.
        """
        tags = self.tags_for(release)
        logger.info("Building %s from %s", ", ".join(tags), self.build_context)
        try:
            self.builder.build(self.build_context, tags, dockerfile=self.dockerfile)
        except Exception as exc:
            raise BuildError(f"image build failed: {_describe(exc)}") from exc

        if self.push:
            for tag in tags:
                logger.info("Pushing %s", tag)
                try:
                    self.registry.push(tag)
                except Exception as exc:
                    raise PublishError(f"push of {tag} failed: {_describe(exc)}") from exc
        return tags[-1]
