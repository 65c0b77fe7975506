from __future__ import annotations
import logging
import requests
from typing import List, Dict, Any, Iterable, Optional
from core.exceptions import PBError

logger = logging.getLogger(__name__)

PER_PAGE = 500
# objectives come back with their tasks (and each task's assignee) expanded
OBJECTIVE_EXPAND = "tasks_via_objective.assignee"


def _quote(value: str) -> str:
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def _any_of(field: str, values: Iterable[str]) -> str:
    return "(" + " || ".join(f"{field} = {_quote(v)}" for v in values) + ")"


class PocketBaseClient:
    def __init__(self, base_url: str, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.token: Optional[str] = ""
        self.user_id: Optional[str] = ""
        self.email: Optional[str] = ""

    def _records_url(self, collection: str, record_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/api/collections/{collection}/records"
        return f"{url}/{record_id}" if record_id else url

    def _json(self, r: requests.Response, what: str) -> Dict[str, Any]:
        if not r.ok:
            logger.warning("%s failed: %s %s", what, r.status_code, r.text)
            raise PBError(f"{what} failed: {r.status_code} {r.text}", status_code=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise PBError(f"{what}: invalid JSON response", status_code=r.status_code) from e

    def _list(self, collection: str, filt: str, **params) -> List[Dict[str, Any]]:
        params = {"filter": filt, "perPage": PER_PAGE, **params}
        r = self.session.get(self._records_url(collection), params=params, timeout=self.timeout)
        return self._json(r, f"List {collection}").get("items", [])

    # ---------- auth ----------
    def login(self, identity: str, password: str) -> bool:
        url = f"{self.base_url}/api/collections/users/auth-with-password"
        r = self.session.post(url, json={"identity": identity, "password": password}, timeout=self.timeout)
        if not r.ok:
            raise PBError(f"Login failed: {r.status_code} {r.text}", status_code=r.status_code)
        data = r.json()
        record = data.get("record", {})
        self.token = data.get("token")
        self.user_id = record.get("id")
        self.email = record.get("email") or identity
        if not self.token or not self.user_id:
            raise PBError("Missing token or user id in login response")
        self.session.headers.update({"Authorization": f"Bearer {self.token}"})
        logger.info("signed in as %s", self.email)
        return True

    def register(self, email: str, password: str) -> Dict[str, Any]:
        payload = {"email": email, "password": password, "passwordConfirm": password, "emailVisibility": True}
        r = self.session.post(self._records_url("users"), json=payload, timeout=self.timeout)
        return self._json(r, "Register")

    # ---------- users ----------
    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        items = self._list("users", f"email = {_quote(email)}", perPage=1)
        return items[0] if items else None

    def get_users(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = [u for u in user_ids if u]
        if not ids:
            return []
        return self._list("users", _any_of("id", ids))

    # ---------- workspaces ----------
    def list_workspaces(self) -> List[Dict[str, Any]]:
        uid = _quote(self.user_id)
        return self._list("workspaces", f"owner = {uid} || members ?= {uid}", sort="created")

    def get_workspace(self, workspace_id: str) -> Dict[str, Any]:
        r = self.session.get(self._records_url("workspaces", workspace_id), timeout=self.timeout)
        return self._json(r, "Get workspace")

    def create_workspace(self, name: str) -> Dict[str, Any]:
        payload = {"name": name, "owner": self.user_id, "members": [self.user_id]}
        r = self.session.post(self._records_url("workspaces"), json=payload, timeout=self.timeout)
        return self._json(r, "Create workspace")

    def patch_workspace(self, workspace_id: str, **fields) -> Dict[str, Any]:
        r = self.session.patch(self._records_url("workspaces", workspace_id), json=fields, timeout=self.timeout)
        return self._json(r, "Update workspace")

    # ---------- objectives ----------
    def list_objectives(self, workspace_ids: Iterable[str], archived: Optional[bool] = None) -> List[Dict[str, Any]]:
        ids = list(workspace_ids)
        if not ids:
            return []
        filt = _any_of("workspace", ids)
        if archived is not None:
            filt += f" && archived = {'true' if archived else 'false'}"
        return self._list("objectives", filt, sort="created", expand=OBJECTIVE_EXPAND)

    def get_objective(self, objective_id: str) -> Dict[str, Any]:
        r = self.session.get(self._records_url("objectives", objective_id),
                             params={"expand": OBJECTIVE_EXPAND}, timeout=self.timeout)
        return self._json(r, "Get objective")

    def create_objective(self, *, description: str, workspace_id: str) -> Dict[str, Any]:
        payload = {
            "description": description,
            "owner": self.user_id,
            "workspace": workspace_id,
            "archived": False,
        }
        r = self.session.post(self._records_url("objectives"), json=payload, timeout=self.timeout)
        return self._json(r, "Create objective")

    def patch_objective(self, objective_id: str, **fields) -> Dict[str, Any]:
        r = self.session.patch(self._records_url("objectives", objective_id), json=fields, timeout=self.timeout)
        return self._json(r, "Update objective")

    # ---------- tasks ----------
    def list_tasks(self, objective_ids: Iterable[str], assignee: Optional[str] = None) -> List[Dict[str, Any]]:
        ids = list(objective_ids)
        if not ids:
            return []
        filt = _any_of("objective", ids)
        if assignee:
            filt += f" && assignee = {_quote(assignee)}"
        return self._list("tasks", filt, sort="created", expand="assignee")

    def create_task(self, *, description: str, objective_id: str, status: str = "To Do",
                    priority: str = "Medium", start_date: str = "", due_date: str = "",
                    assignee: str = "") -> Dict[str, Any]:
        payload = {
            "description": description,
            "status": status,
            "priority": priority,
            "objective": objective_id,
            "start_date": start_date,
            "due_date": due_date,
            "assignee": assignee,
        }
        r = self.session.post(self._records_url("tasks"), json=payload,
                              params={"expand": "assignee"}, timeout=self.timeout)
        return self._json(r, "Create task")

    def patch_task(self, task_id: str, **fields) -> Dict[str, Any]:
        r = self.session.patch(self._records_url("tasks", task_id), json=fields,
                               params={"expand": "assignee"}, timeout=self.timeout)
        return self._json(r, "Update task")

    def delete_task(self, task_id: str) -> None:
        r = self.session.delete(self._records_url("tasks", task_id), timeout=self.timeout)
        if not r.ok and r.status_code != 404:
            raise PBError(f"Delete task failed: {r.status_code} {r.text}", status_code=r.status_code)
