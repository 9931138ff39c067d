#!/usr/bin/env python3
"""
k8s_resource_quota_viewer.py

Purpose:
  Display ResourceQuota objects for one or more Kubernetes namespaces as a
  table of hard limits, current usage and utilization percentage. Works as a
  kubectl plugin when installed on PATH as kubectl-resource_quota.

Behaviour:
  - Namespaces are given as a comma list; entries are trimmed and blanks skipped
  - A failed list call for one namespace is reported inline and the scan continues
  - Namespaces without any quota are summarized on the last line
  - Plain byte counts above 1Mi are shown as Mi/Gi with two decimals; values
    already carrying Ki/Mi/Gi are shown as returned by the API

Kubeconfig resolution:
  --kubeconfig path, else $KUBECONFIG / ~/.kube/config, else in-cluster config.

Examples:
  python k8s_resource_quota_viewer.py -n team-a
  python k8s_resource_quota_viewer.py --namespaces team-a,team-b --kubeconfig ~/.kube/staging
  kubectl resource-quota -n team-a

Exit Codes:
  0 success (including namespaces that returned errors)
  1 kubeconfig / client setup error
  2 usage error
  130 interrupted
"""
from __future__ import annotations
import argparse
import re
import sys
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, NamedTuple, Optional

from kubernetes import client, config
from kubernetes.utils import parse_quantity

BINARY_SUFFIXES = ("Ki", "Mi", "Gi")
MI = 1024 ** 2
GI = 1024 ** 3
INT64_MAX = 2 ** 63 - 1

SEPARATOR = "=========================================="

# Go-style base-10 integer: optional sign, digits only
_PLAIN_INT = re.compile(r"[+-]?[0-9]+")


class QuotaViewError(Exception):
    """Base error for the quota viewer."""


class SetupError(QuotaViewError):
    """Kubeconfig could not be loaded or the API client could not be built. Fatal."""


class NamespaceQueryError(QuotaViewError):
    """Listing quotas failed for a single namespace. The scan continues."""

    def __init__(self, namespace: str, cause: Exception):
        super().__init__(f"ERROR getting quotas for {namespace}: {cause}")
        self.namespace = namespace
        self.cause = cause


@dataclass(frozen=True)
class QuotaViewOptions:
    namespaces: List[str]
    kubeconfig: Optional[str] = None


class QuotaRow(NamedTuple):
    resource: str
    used: str
    hard: str
    percentage: float

    def render(self) -> str:
        return f"{self.resource}\t\t{self.used}\t\t{self.hard}\t\t{self.percentage:.1f}%"


def parse_namespaces(raw: str) -> List[str]:
    return [n.strip() for n in raw.split(',') if n.strip()]


def parse_args(argv: Optional[List[str]] = None) -> QuotaViewOptions:
    p = argparse.ArgumentParser(
        prog="kubectl-resource_quota",
        description="View resource quotas for Kubernetes namespaces with usage percentages",
    )
    p.add_argument("--namespaces", "-n", required=True,
                   help="Namespace(s) to check quotas for. Use comma-separated for multiple: ns1,ns2,ns3")
    p.add_argument("--kubeconfig", help="Path to kubeconfig file")
    args = p.parse_args(argv)
    return QuotaViewOptions(namespaces=parse_namespaces(args.namespaces), kubeconfig=args.kubeconfig or None)


def build_core_api(kubeconfig: Optional[str] = None) -> client.CoreV1Api:
    """Resolve cluster configuration and return a CoreV1Api bound to it.

    An explicit kubeconfig must load. Without one, the default kubeconfig
    location is tried first, then in-cluster service account config.
    """
    cfg = client.Configuration()
    try:
        try:
            config.load_kube_config(config_file=kubeconfig, client_configuration=cfg)
        except config.ConfigException:
            if kubeconfig:
                raise
            config.load_incluster_config(client_configuration=cfg)
    except Exception as e:
        raise SetupError(f"error on load kubeconfig file: {e}") from e

    try:
        return client.CoreV1Api(client.ApiClient(configuration=cfg))
    except Exception as e:
        raise SetupError(f"error on create kubernetes client: {e}") from e


def list_quotas(core: client.CoreV1Api, namespace: str) -> list:
    try:
        return core.list_namespaced_resource_quota(namespace).items or []
    except Exception as e:
        # ApiException and transport errors are reported alike
        raise NamespaceQueryError(namespace, e) from e


def _quantity_value(raw: str) -> Decimal:
    try:
        return parse_quantity(raw)
    except (ValueError, InvalidOperation):
        return Decimal(0)


def percentage(used: str, hard: str) -> float:
    """Utilization of hard by used, in percent. Not clamped; zero when hard is zero or negative."""
    hard_val = _quantity_value(hard)
    if hard_val <= 0:
        return 0.0
    return float(_quantity_value(used) / hard_val * 100)


def format_quantity(raw: str) -> str:
    if raw.endswith(BINARY_SUFFIXES):
        return raw
    if not _PLAIN_INT.fullmatch(raw):
        return raw
    val = int(raw)
    if val > INT64_MAX or val <= 1024:
        return raw
    if val >= GI:
        return f"{val / GI:.2f}Gi"
    if val >= MI:
        return f"{val / MI:.2f}Mi"
    return raw


def quota_rows(quota) -> Iterable[QuotaRow]:
    status = quota.status
    hard = (status.hard if status else None) or {}
    used = (status.used if status else None) or {}
    for resource, hard_raw in hard.items():
        used_raw = used.get(resource, "0")
        yield QuotaRow(
            resource=resource,
            used=format_quantity(used_raw),
            hard=format_quantity(hard_raw),
            percentage=percentage(used_raw, hard_raw),
        )


def print_quota(quota):
    print(SEPARATOR)
    print(f"Name:\t\t{quota.metadata.name}")
    print(f"Namespace:\t{quota.metadata.namespace}")
    print(SEPARATOR)
    print("Resource\t\tUsed\t\tHard\t\tPercentage")
    print("--------\t\t----\t\t----\t\t----------")
    for row in quota_rows(quota):
        print(row.render())
    print()


def run(opts: QuotaViewOptions, core: Optional[client.CoreV1Api] = None) -> int:
    if core is None:
        core = build_core_api(opts.kubeconfig)

    empty_ns: List[str] = []
    for ns in opts.namespaces:
        print(f"Checking namespace: {ns}")
        try:
            quotas = list_quotas(core, ns)
        except NamespaceQueryError as e:
            print(e)
            continue
        if not quotas:
            empty_ns.append(ns)
            print(f"No quotas found in {ns}")
            continue
        for quota in quotas:
            print_quota(quota)

    if empty_ns:
        print(f"Namespaces with no quotas: {', '.join(empty_ns)}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    opts = parse_args(argv)
    try:
        return run(opts)
    except SetupError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


def cli():
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print('Interrupted', file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f'ERROR: {e}', file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    cli()
