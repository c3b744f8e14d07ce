"""Control plane backed by the official Kubernetes Python client."""

from __future__ import annotations

import logging
from typing import Any, Dict

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from bluegreen.errors import ControlPlaneError
from bluegreen.k8s.resources import (
    Condition,
    ConditionStatus,
    ConditionType,
    ControlPlane,
    DeploymentStatus,
    ServiceState,
)

logger = logging.getLogger(__name__)

# Raised by the client when the API server cannot be reached at all.
_TRANSPORT_ERRORS = (HTTPError, OSError)


def _wrap(exc: ApiException, what: str) -> ControlPlaneError:
    return ControlPlaneError(f"{what}: {exc.status} {exc.reason}", status=exc.status)


def _unreachable(exc: Exception, what: str) -> ControlPlaneError:
    return ControlPlaneError(f"{what}: API server unreachable: {exc}", status=None)


def _to_status(dep: Any) -> DeploymentStatus:
    """Translate a ``V1Deployment`` into a :class:`DeploymentStatus`."""
    meta = dep.metadata
    spec = dep.spec
    st = dep.status
    containers = []
    if spec is not None and spec.template is not None and spec.template.spec is not None:
        containers = spec.template.spec.containers or []

    conditions = []
    for c in (st.conditions if st is not None else None) or []:
        try:
            ctype = ConditionType(c.type)
        except ValueError:
            continue
        try:
            cstatus = ConditionStatus(c.status)
        except ValueError:
            cstatus = ConditionStatus.UNKNOWN
        conditions.append(Condition(ctype, cstatus, reason=c.reason or "", message=c.message or ""))

    desired = spec.replicas if spec is not None and spec.replicas is not None else 1
    return DeploymentStatus(
        name=meta.name,
        labels=dict(meta.labels or {}),
        desired_replicas=desired,
        current_replicas=(st.replicas or 0) if st is not None else 0,
        updated_replicas=(st.updated_replicas or 0) if st is not None else 0,
        ready_replicas=(st.ready_replicas or 0) if st is not None else 0,
        available_replicas=(st.available_replicas or 0) if st is not None else 0,
        generation=meta.generation or 0,
        observed_generation=(st.observed_generation or 0) if st is not None else 0,
        images={c.name: c.image for c in containers},
        conditions=conditions,
    )


class KubernetesControlPlane(ControlPlane):
    """Talks to a real cluster through ``AppsV1Api`` and ``CoreV1Api``.

    Applying uses a strategic-merge patch when the resource exists and a
    create otherwise, which is what ``kubectl apply`` does for the fields a
    slot manifest carries.
    """

    def __init__(
        self,
        namespace: str = "default",
        apps_api: Any = None,
        core_api: Any = None,
    ) -> None:
        self.namespace = namespace
        self._apps = apps_api if apps_api is not None else client.AppsV1Api()
        self._core = core_api if core_api is not None else client.CoreV1Api()

    @classmethod
    def from_config(
        cls,
        namespace: str = "default",
        context: str | None = None,
        in_cluster: bool = False,
    ) -> KubernetesControlPlane:
        """Load cluster credentials and build a control plane.

        Raises:
            ControlPlaneError: No usable kubeconfig or in-cluster credentials.
        """
        try:
            if in_cluster:
                config.load_incluster_config()
            else:
                config.load_kube_config(context=context)
        except ConfigException as exc:
            raise ControlPlaneError(f"cannot load kubernetes config: {exc}") from exc
        logger.debug("Loaded kubernetes config (in_cluster=%s, context=%s)", in_cluster, context)
        return cls(namespace=namespace)

    def get_deployment(self, name: str) -> DeploymentStatus | None:
        try:
            dep = self._apps.read_namespaced_deployment(name=name, namespace=self.namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise _wrap(exc, f"read deployment {name}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise _unreachable(exc, f"read deployment {name}") from exc
        return _to_status(dep)

    def get_service(self, name: str) -> ServiceState | None:
        try:
            svc = self._core.read_namespaced_service(name=name, namespace=self.namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise _wrap(exc, f"read service {name}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise _unreachable(exc, f"read service {name}") from exc
        selector = svc.spec.selector if svc.spec is not None else None
        return ServiceState(name=name, selector=dict(selector or {}))

    def apply_manifest(self, doc: Dict[str, Any]) -> str:
        kind = doc.get("kind")
        name = (doc.get("metadata") or {}).get("name")
        if kind == "Deployment":
            read = self._apps.read_namespaced_deployment
            patch = self._apps.patch_namespaced_deployment
            create = self._apps.create_namespaced_deployment
        elif kind == "Service":
            read = self._core.read_namespaced_service
            patch = self._core.patch_namespaced_service
            create = self._core.create_namespaced_service
        else:
            raise ControlPlaneError(f"unsupported resource kind {kind!r}", status=422)

        try:
            exists = self._exists(read, name, f"read {kind} {name}")
            if exists:
                patch(name=name, namespace=self.namespace, body=doc)
            else:
                create(namespace=self.namespace, body=doc)
        except ApiException as exc:
            verb = "patch" if exists else "create"
            raise _wrap(exc, f"{verb} {kind} {name}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise _unreachable(exc, f"apply {kind} {name}") from exc
        action = "configured" if exists else "created"
        logger.info("%s/%s %s", kind, name, action)
        return action

    def _exists(self, read: Any, name: str, what: str) -> bool:
        try:
            read(name=name, namespace=self.namespace)
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise _wrap(exc, what) from exc
        return True

    def set_image(self, deployment: str, container: str, image: str) -> None:
        # A strategic merge on an unknown container name would add a new
        # container, so check the name first like ``kubectl set image``.
        what = f"set image on {deployment}"
        try:
            dep = self._apps.read_namespaced_deployment(name=deployment, namespace=self.namespace)
            names = [c.name for c in (dep.spec.template.spec.containers or [])]
            if container not in names:
                raise ControlPlaneError(
                    f"container {container} not found in deployment {deployment}", status=422
                )
            body = {"spec": {"template": {"spec": {"containers": [{"name": container, "image": image}]}}}}
            self._apps.patch_namespaced_deployment(name=deployment, namespace=self.namespace, body=body)
        except ApiException as exc:
            raise _wrap(exc, what) from exc
        except _TRANSPORT_ERRORS as exc:
            raise _unreachable(exc, what) from exc

    def patch_service_selector(self, service: str, label: str, value: str) -> None:
        body = {"spec": {"selector": {label: value}}}
        try:
            self._core.patch_namespaced_service(name=service, namespace=self.namespace, body=body)
        except ApiException as exc:
            raise _wrap(exc, f"patch service {service}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise _unreachable(exc, f"patch service {service}") from exc

    def delete_deployment(self, name: str) -> bool:
        try:
            self._apps.delete_namespaced_deployment(name=name, namespace=self.namespace)
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise _wrap(exc, f"delete deployment {name}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise _unreachable(exc, f"delete deployment {name}") from exc
        return True
