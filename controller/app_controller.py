import logging
from typing import List, Dict, Any, Iterable, Optional

from core.config import DEFAULT_WORKSPACE_NAME, MIN_PASSWORD_LENGTH
from core.exceptions import ActionError, PBError
from core.models import (
    TASK_PRIORITIES, TASK_STATUSES, Objective, Task, TaskDraft, User, Workspace,
    Suggestions, format_timestamp,
)
from services.metrics import Summary, summarize
from services.reconciler import Dispatch, Notify, StatusReconciler
from services.state import BoardState
from services.suggestions import SuggestionClient
from services.timeline import layout_objectives
from storage.pocketbase import PocketBaseClient

logger = logging.getLogger(__name__)

# task fields the UI may edit, mapped to their PocketBase names
_EDITABLE_TASK_FIELDS = {
    "description": "description",
    "status": "status",
    "priority": "priority",
    "start_date": "start_date",
    "due_date": "due_date",
    "assignee_id": "assignee",
}


class AppController:
    """Coordinates the UI with the backend (PocketBase) and the domain services."""
    def __init__(self, client: PocketBaseClient, state: Optional[BoardState] = None,
                 suggestions: Optional[SuggestionClient] = None, notify: Optional[Notify] = None,
                 dispatch: Optional[Dispatch] = None, executor=None):
        self.client = client
        self.state = state or BoardState()
        self.suggestions = suggestions
        self.reconciler = StatusReconciler(self.state, self.confirm_status_transition,
                                           notify=notify, executor=executor, dispatch=dispatch)
        self.workspaces: List[Workspace] = []
        self.workspace: Optional[Workspace] = None
        self.show_archived = False

    # ---- UI integration ----
    def bind_ui(self, notify: Optional[Notify] = None, dispatch: Optional[Dispatch] = None):
        """Route status notifications and reconciliation through the UI thread."""
        if notify is not None:
            self.reconciler.notify = notify
        if dispatch is not None:
            self.reconciler.dispatch = dispatch

    def shutdown(self):
        self.reconciler.shutdown(wait=False)

    @property
    def user_id(self) -> Optional[str]:
        return self.client.user_id or None

    # ---- auth ----
    def sign_in(self, identity: str, password: str) -> User:
        self.client.login(identity.strip().lower(), password)
        return User(id=self.client.user_id, email=self.client.email or identity)

    def sign_up(self, email: str, password: str) -> User:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ActionError("Please provide a valid email address.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ActionError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
        try:
            self.client.register(email, password)
        except PBError as e:
            if e.status_code == 400:
                raise ActionError("User with this email already exists.") from e
            raise
        return self.sign_in(email, password)

    # ---- workspaces ----
    def load_workspaces(self) -> List[Workspace]:
        records = self.client.list_workspaces()
        if not records:
            logger.info("no workspaces for %s, creating %r", self.user_id, DEFAULT_WORKSPACE_NAME)
            records = [self.client.create_workspace(DEFAULT_WORKSPACE_NAME)]
        self.workspaces = [Workspace.from_record(r) for r in records]
        return self.workspaces

    def select_workspace(self, workspace_id: str) -> int:
        for ws in self.workspaces:
            if ws.id == workspace_id:
                self.workspace = ws
                break
        else:
            raise ActionError("Workspace not found.")
        return self.refresh()

    def is_owner(self, workspace: Optional[Workspace] = None) -> bool:
        workspace = workspace or self.workspace
        return bool(workspace) and workspace.owner_id == self.user_id

    def create_workspace(self, name: str) -> Workspace:
        name = (name or "").strip()
        if not name:
            raise ActionError("Workspace name cannot be empty.")
        ws = Workspace.from_record(self.client.create_workspace(name))
        self.workspaces.append(ws)
        return ws

    def list_members(self, workspace_id: str) -> List[User]:
        ws = self._fetch_workspace(workspace_id)
        by_id = {r["id"]: User.from_record(r) for r in self.client.get_users(ws.member_ids)}
        return [by_id[m] for m in ws.member_ids if m in by_id]

    def add_member(self, workspace_id: str, email: str) -> Workspace:
        email = (email or "").strip().lower()
        if not email:
            raise ActionError("Member email is required.")
        ws = self._fetch_workspace(workspace_id)
        if ws.owner_id != self.user_id:
            raise ActionError("Only the workspace owner can add members.")
        record = self.client.find_user_by_email(email)
        if not record:
            raise ActionError(f"User with email {email} not found.")
        if ws.is_member(record["id"]):
            raise ActionError(f"User {email} is already a member of this workspace.")
        updated = Workspace.from_record(
            self.client.patch_workspace(ws.id, members=ws.member_ids + [record["id"]]))
        self._remember_workspace(updated)
        logger.info("added %s to workspace %s", email, ws.id)
        return updated

    def remove_member(self, workspace_id: str, member_id: str) -> Workspace:
        ws = self._fetch_workspace(workspace_id)
        if ws.owner_id != self.user_id:
            raise ActionError("Only the workspace owner can remove members.")
        if member_id == ws.owner_id:
            raise ActionError("The workspace owner cannot be removed.")
        if not ws.is_member(member_id):
            raise ActionError("User is not a member of this workspace or already removed.")
        members = [m for m in ws.member_ids if m != member_id]
        updated = Workspace.from_record(self.client.patch_workspace(ws.id, members=members))
        self._remember_workspace(updated)

        # tasks assigned to the removed member lose their assignee
        objective_ids = [o["id"] for o in self.client.list_objectives([ws.id])]
        for t in self.client.list_tasks(objective_ids, assignee=member_id):
            self.client.patch_task(t["id"], assignee="")
        logger.info("removed %s from workspace %s", member_id, ws.id)

        if self.workspace and self.workspace.id == ws.id:
            self.refresh()
        return updated

    # ---- objectives ----
    def refresh(self) -> int:
        """Reload the current workspace's objectives into the board. Returns the task count."""
        if not self.workspace:
            self.state.clear()
            return 0
        records = self.client.list_objectives([self.workspace.id], archived=self.show_archived)
        objectives = [Objective.from_record(r) for r in records]
        self.state.load(objectives)
        return sum(len(o.tasks) for o in objectives)

    def set_show_archived(self, show: bool) -> int:
        self.show_archived = bool(show)
        return self.refresh()

    def add_objective(self, description: str, tasks: Iterable[TaskDraft] = ()) -> Objective:
        description = (description or "").strip()
        if not self.user_id or not self.workspace:
            raise ActionError("User ID and Workspace ID are required to create an objective.")
        if not description:
            raise ActionError("Objective description cannot be empty.")
        ws = self._fetch_workspace(self.workspace.id)
        if not ws.is_member(self.user_id):
            raise ActionError("User is not a member of this workspace.")
        drafts = self._clean_drafts(tasks, ws)

        record = self.client.create_objective(description=description, workspace_id=ws.id)
        for d in drafts:
            self._create_task(record["id"], d)
        objective = Objective.from_record(self.client.get_objective(record["id"]))
        self.state.upsert_objective(objective)
        return objective

    def update_objective(self, objective_id: str, description: str = "",
                         new_tasks: Iterable[TaskDraft] = (), delete_ids: Iterable[str] = (),
                         task_updates: Iterable[Dict[str, Any]] = ()) -> Objective:
        current = Objective.from_record(self.client.get_objective(objective_id))
        if not current.workspace_id:
            raise ActionError("Associated workspace not found. Cannot validate members.")
        ws = self._fetch_workspace(current.workspace_id)

        # validate everything before the first write
        drafts = self._clean_drafts(new_tasks, ws)
        patches = []
        for update in task_updates:
            update = dict(update)
            task_id = update.pop("id")
            if current.task(task_id) is None:
                continue
            patch = self._task_patch(update, ws)
            if patch:
                patches.append((task_id, patch))

        description = (description or "").strip()
        if description and description != current.description:
            self.client.patch_objective(objective_id, description=description)
        for task_id in delete_ids:
            if current.task(task_id) is not None:
                self.client.delete_task(task_id)
        for task_id, patch in patches:
            self.client.patch_task(task_id, **patch)
        for d in drafts:
            self._create_task(objective_id, d)

        objective = Objective.from_record(self.client.get_objective(objective_id))
        self.state.upsert_objective(objective)
        return objective

    def archive_objective(self, objective_id: str):
        self.client.patch_objective(objective_id, archived=True)
        self.state.remove_objective(objective_id)

    def unarchive_objective(self, objective_id: str):
        self.client.patch_objective(objective_id, archived=False)
        self.state.remove_objective(objective_id)

    # ---- tasks ----
    def update_task(self, task_id: str, objective_id: str, **fields) -> Task:
        """Edit/patch a task. None for a date or the assignee clears it."""
        current = self.state.find_task(objective_id, task_id)
        objective = self.state.find_objective(objective_id)
        ws_id = (objective.workspace_id if objective else None) or (self.workspace.id if self.workspace else None)
        ws = self._fetch_workspace(ws_id) if "assignee_id" in fields and fields["assignee_id"] else None
        patch = self._task_patch(fields, ws)
        if not patch:
            if current is None:
                raise ActionError("Task not found.")
            return current
        try:
            task = Task.from_record(self.client.patch_task(task_id, **patch))
        except PBError as e:
            if e.not_found:
                raise ActionError("Task not found.") from e
            raise
        self.state.replace_task(task)
        return task

    def confirm_status_transition(self, task_id: str, new_status: str, objective_id: str) -> Dict[str, Any]:
        """Persist a status change. Store refusals come back as success=False, transport errors raise."""
        if not task_id:
            return {"success": False, "error": "Task ID is required."}
        try:
            record = self.client.patch_task(task_id, status=new_status)
        except PBError as e:
            if e.not_found:
                return {"success": False, "error": "Task not found."}
            return {"success": False, "error": f"Failed to update task status. {e}"}
        return {"success": True, "task": Task.from_record(record)}

    def change_task_status(self, task_id: str, new_status: str, old_status: str, objective_id: str):
        return self.reconciler.transition(task_id, new_status, old_status, objective_id)

    # ---- read models ----
    def summary(self) -> Summary:
        return summarize(self.state.objectives())

    def timelines(self):
        return layout_objectives(self.state.objectives())

    def suggest_tasks(self, prompt: str) -> Suggestions:
        if self.suggestions is None:
            raise ActionError("AI suggestions are not configured.")
        return self.suggestions.suggest(prompt)

    # ---- helpers ----
    def _fetch_workspace(self, workspace_id: Optional[str]) -> Workspace:
        if not workspace_id:
            raise ActionError("Workspace not found.")
        try:
            return Workspace.from_record(self.client.get_workspace(workspace_id))
        except PBError as e:
            if e.not_found:
                raise ActionError("Workspace not found.") from e
            raise

    def _remember_workspace(self, ws: Workspace):
        self.workspaces = [ws if w.id == ws.id else w for w in self.workspaces]
        if self.workspace and self.workspace.id == ws.id:
            self.workspace = ws

    def _clean_drafts(self, drafts: Iterable[TaskDraft], ws: Workspace) -> List[TaskDraft]:
        cleaned = []
        for d in drafts:
            desc = (d.description or "").strip()
            if not desc:
                continue
            if d.assignee_id and not ws.is_member(d.assignee_id):
                raise ActionError(
                    f"Cannot create task {desc}: User {d.assignee_id} is not a member of the workspace.")
            cleaned.append(TaskDraft(desc, d.assignee_id or None, d.start_date, d.due_date))
        return cleaned

    def _create_task(self, objective_id: str, draft: TaskDraft) -> Dict[str, Any]:
        return self.client.create_task(
            description=draft.description,
            objective_id=objective_id,
            start_date=format_timestamp(draft.start_date),
            due_date=format_timestamp(draft.due_date),
            assignee=draft.assignee_id or "",
        )

    def _task_patch(self, fields: Dict[str, Any], ws: Optional[Workspace]) -> Dict[str, Any]:
        patch: Dict[str, Any] = {}
        for key, value in fields.items():
            if key not in _EDITABLE_TASK_FIELDS:
                raise ActionError(f"Unknown task field: {key}")
            name = _EDITABLE_TASK_FIELDS[key]
            if key == "description":
                value = (value or "").strip()
                if not value:
                    raise ActionError("Task description cannot be empty.")
            elif key == "status" and value not in TASK_STATUSES:
                raise ActionError(f"Invalid status: {value}")
            elif key == "priority" and value not in TASK_PRIORITIES:
                raise ActionError(f"Invalid priority: {value}")
            elif key in ("start_date", "due_date"):
                value = format_timestamp(value)
            elif key == "assignee_id":
                value = (value or "").strip()
                if value and (ws is None or not ws.is_member(value)):
                    raise ActionError("Assignee is not a member of this workspace.")
            patch[name] = value
        return patch
