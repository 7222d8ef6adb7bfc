"""
Keeps track of the workflows of a session and hands out new ones.
"""

import logging
from pathlib import Path

from m3u_cli.core.workflow import AttachCompletion, DownloadClient, Workflow
from m3u_cli.exceptions import WorkflowConflictError
from m3u_cli.models.config import DownloadConfig
from m3u_cli.utils.path import playlist_name

log = logging.getLogger(__name__)


class WorkflowManager:
    """
    Creates workflows for playlist URLs and forgets them once they finish.

    Two playlists that derive the same name would share a workspace
    directory, so only one workflow per name may be active at a time.
    """

    def __init__(self, config: DownloadConfig, client: DownloadClient):
        self.config = config
        self.client = client
        self._workflows: dict[str, Workflow] = {}

    @property
    def workflows(self) -> list[Workflow]:
        return list(self._workflows.values())

    @property
    def workspace_root(self) -> Path:
        return self.config.workspace_path

    def get(self, url: str) -> Workflow | None:
        workflow = self._workflows.get(playlist_name(url))
        if workflow and workflow.url == url:
            return workflow
        return None

    def attach(self, url: str, completion: AttachCompletion | None = None) -> Workflow:
        """
        Creates a workflow for `url`, registers it and starts its attach phase.

        Raises:
            WorkflowConflictError: If a workflow with the same name is active.
        """
        name = playlist_name(url)
        if active := self._workflows.get(name):
            raise WorkflowConflictError(
                f"Workspace '{name}' is already in use by {active.url}"
            )

        workflow = Workflow(
            url,
            self.workspace_root,
            self.client,
            progress_interval=self.config.progress_interval,
            segment_prefix=self.config.segment_prefix,
            keep_segments=self.config.keep_segments,
            listener=self,
        )
        self._workflows[name] = workflow
        log.debug(f"Registered workflow '{name}'.")
        return workflow.attach(completion)

    def cancel(self, url: str) -> bool:
        """Cancels and forgets the workflow for `url`. Returns False if unknown."""
        workflow = self.get(url)
        if workflow is None:
            return False
        workflow.cancel()
        self._forget(workflow)
        return True

    def cancel_all(self) -> None:
        for workflow in self.workflows:
            workflow.cancel()
            self._forget(workflow)

    def workflow_did_finish(self, workflow: Workflow) -> None:
        self._forget(workflow)

    def _forget(self, workflow: Workflow) -> None:
        if self._workflows.get(workflow.name) is workflow:
            del self._workflows[workflow.name]
            log.debug(f"Workflow '{workflow.name}' finished.")
