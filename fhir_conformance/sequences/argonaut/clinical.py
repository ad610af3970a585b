"""Clinical resource groups of the Argonaut Data Query sequence.

Each group follows the same shape: an unauthorized search, the primary
search by patient (which stores the first returned resource in the
context), searches whose parameters are taken from that stored resource,
and finally read, history and vread of it. The groups are declared as data
and turned into test cases by :func:`register_group`.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from fhir_conformance.config import ARGONAUT_GUIDE_URL, SMOKING_STATUS_LOINC
from fhir_conformance.resources import first_entry_resource, first_present
from fhir_conformance.sequences.argonaut.sequence import ARGONAUT_DATA_QUERY, PATIENT_ID_KEY
from fhir_conformance.sequences.assertions import (
    assert_response_unauthorized,
    require,
    save_resource_ids_in_bundle,
    search_params,
    skip_if_not_supported,
    validate_history_reply,
    validate_read_reply,
    validate_search_reply,
    validate_vread_reply,
)

READ_DESCRIPTION = (
    "All servers SHALL make available the read interactions for the Argonaut "
    "Profiles the server chooses to support."
)
HISTORY_DESCRIPTION = (
    "All servers SHOULD make available the vread and history-instance "
    "interactions for the Argonaut Profiles the server chooses to support."
)
SEARCH_READ = ("search", "read")


@dataclass(frozen=True)
class Derived:
    """A search parameter read from the stored resource."""

    param: str
    paths: Tuple[str, ...]
    missing: str


@dataclass(frozen=True)
class ParamSearch:
    label: str
    description: str
    optional: bool = False
    fixed: Dict[str, str] = field(default_factory=dict)
    derived: Tuple[Derived, ...] = ()


@dataclass(frozen=True)
class ResourceGroup:
    kind: str
    label: str
    context_key: str
    search_label: str
    search_description: str
    base_params: Dict[str, str] = field(default_factory=dict)
    searches: Tuple[ParamSearch, ...] = ()
    search_interactions: bool = True
    # Observation profiles share one read/history/vread block
    instance_interactions: bool = True
    key_prefix: str = ""
    unauthorized_title: str = ""

    @property
    def slug(self) -> str:
        return self.key_prefix or self.context_key

    @property
    def unauthorized_search_title(self) -> str:
        return self.unauthorized_title or f"Server rejects {self.label} search without authorization"

    @property
    def unauthorized_article(self) -> str:
        return "An" if self.label[0] in "AEIOU" else "A"


class _GroupBody:
    """Common state for the callable test bodies of one resource group."""

    def __init__(self, group: ResourceGroup) -> None:
        self.group = group

    def patient_id(self, context):
        return require(context.get(PATIENT_ID_KEY), "Patient id not configured for this run")

    def stored(self, context):
        return require(
            context.get(self.group.context_key),
            f"Expected valid DSTU2 {self.group.kind} resource to be present",
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.group.label})"


class UnauthorizedSearch(_GroupBody):
    def __call__(self, context, client, capabilities):
        group = self.group
        skip_if_not_supported(capabilities, group.kind, SEARCH_READ)
        params = search_params(self.patient_id(context), group.base_params)
        with client.without_credentials():
            reply = client.search(group.kind, params)
        assert_response_unauthorized(reply)


class PatientSearch(_GroupBody):
    def __call__(self, context, client, capabilities):
        group = self.group
        skip_if_not_supported(capabilities, group.kind, SEARCH_READ)
        reply = client.search(group.kind, search_params(self.patient_id(context), group.base_params))
        resource = first_entry_resource(reply.resource, group.kind)
        if resource:
            context.set(group.context_key, resource)
        validate_search_reply(reply, group.kind)
        save_resource_ids_in_bundle(context, group.kind, reply)


class ParameterSearch(_GroupBody):
    def __init__(self, group: ResourceGroup, search: ParamSearch) -> None:
        super().__init__(group)
        self.search = search

    def __call__(self, context, client, capabilities):
        group = self.group
        skip_if_not_supported(capabilities, group.kind, SEARCH_READ)
        extra = dict(group.base_params)
        extra.update(self.search.fixed)
        if self.search.derived:
            resource = self.stored(context)
            for derived in self.search.derived:
                extra[derived.param] = require(
                    first_present(resource, *derived.paths), derived.missing
                )
        reply = client.search(group.kind, search_params(self.patient_id(context), extra))
        validate_search_reply(reply, group.kind)


class ReadInteraction(_GroupBody):
    def __call__(self, context, client, capabilities):
        skip_if_not_supported(capabilities, self.group.kind, SEARCH_READ)
        validate_read_reply(client, context.get(self.group.context_key), self.group.kind)


class HistoryInteraction(_GroupBody):
    def __call__(self, context, client, capabilities):
        skip_if_not_supported(capabilities, self.group.kind, ["history"])
        validate_history_reply(client, context.get(self.group.context_key), self.group.kind)


class VreadInteraction(_GroupBody):
    def __call__(self, context, client, capabilities):
        skip_if_not_supported(capabilities, self.group.kind, ["vread"])
        validate_vread_reply(client, context.get(self.group.context_key), self.group.kind)


def _search_key(group: ResourceGroup, label: str) -> str:
    return f"{group.slug}_search_" + label.replace(" + ", "_").replace(" ", "_").replace("-", "_")


def register_group(registry, group: ResourceGroup) -> None:
    """Register the test cases of one resource group, in sequence order."""
    add = registry.add
    if group.search_interactions:
        _register_searches(registry, group)
    if not group.instance_interactions:
        return
    add(
        f"{group.slug}_read",
        f"{group.kind} read resource supported",
        ReadInteraction(group),
        link=ARGONAUT_GUIDE_URL,
        description=READ_DESCRIPTION,
    )
    add(
        f"{group.slug}_history",
        f"{group.kind} history resource supported",
        HistoryInteraction(group),
        link=ARGONAUT_GUIDE_URL,
        description=HISTORY_DESCRIPTION,
        optional=True,
    )
    add(
        f"{group.slug}_vread",
        f"{group.kind} vread resource supported",
        VreadInteraction(group),
        link=ARGONAUT_GUIDE_URL,
        description=HISTORY_DESCRIPTION,
        optional=True,
    )


def _register_searches(registry, group: ResourceGroup) -> None:
    add = registry.add
    add(
        f"{group.slug}_search_unauthorized",
        group.unauthorized_search_title,
        UnauthorizedSearch(group),
        link=ARGONAUT_GUIDE_URL,
        description=(
            f"{group.unauthorized_article} {group.label} search does not work "
            "without proper authorization."
        ),
    )
    add(
        _search_key(group, group.search_label),
        f"Server returns expected results from {group.label} search by {group.search_label}",
        PatientSearch(group),
        link=ARGONAUT_GUIDE_URL,
        description=group.search_description,
    )
    for search in group.searches:
        add(
            _search_key(group, search.label),
            f"Server returns expected results from {group.label} search by {search.label}",
            ParameterSearch(group, search),
            link=ARGONAUT_GUIDE_URL,
            description=search.description,
            optional=search.optional,
        )


_CAREPLAN_DATE = Derived("date", ("period.start",), "CarePlan period not returned")
_DOCREF_TYPE = Derived("type", ("type.coding.0.code",), "DocumentReference type not returned")
_DOCREF_PERIOD = Derived("period", ("context.period.start",), "DocumentReference period not returned")
_DIAG_DATE = Derived("date", ("effectiveDateTime",), "DiagnosticReport effectiveDateTime not returned")
_DIAG_CODE = Derived("code", ("code.coding.0.code",), "DiagnosticReport code not returned")
_OBS_DATE = Derived("date", ("effectiveDateTime",), "Observation effectiveDateTime not returned")
_OBS_CODE = Derived("code", ("code.coding.0.code",), "Observation code not returned")


_LAB_SEARCHES = (
    ParamSearch(
        "patient + category + date",
        "A server is capable of returning all of a patient's laboratory results queried by category code and date range.",
        derived=(_OBS_DATE,),
    ),
    ParamSearch(
        "patient + category + code",
        "A server is capable of returning all of a patient's laboratory results queried by category and code.",
        derived=(_OBS_CODE,),
    ),
    ParamSearch(
        "patient + category + code + date",
        "A server SHOULD be capable of returning all of a patient's laboratory results queried by category and one or more codes and date range.",
        optional=True,
        derived=(_OBS_CODE, _OBS_DATE),
    ),
)

_VITAL_SIGNS_SEARCHES = (
    ParamSearch(
        "patient + category + date",
        "A server is capable of returning all of a patient's vital signs queried by date range.",
        derived=(_OBS_DATE,),
    ),
    ParamSearch(
        "patient + category + code",
        "A server is capable of returning any of a patient's vital signs queried by one or more of the specified codes.",
        derived=(_OBS_CODE,),
    ),
    ParamSearch(
        "patient + category + code + date",
        "A server SHOULD be capable of returning any of a patient's vital signs queried by one or more of the codes listed below and date range.",
        optional=True,
        derived=(_OBS_CODE, _OBS_DATE),
    ),
)


GROUPS = (
    ResourceGroup(
        kind="AllergyIntolerance",
        label="AllergyIntolerance",
        context_key="allergyintolerance",
        search_label="patient",
        search_description="A server is capable of returning a patient's allergies.",
    ),
    ResourceGroup(
        kind="CarePlan",
        label="CarePlan",
        context_key="careplan",
        search_label="patient + category",
        search_description="A server is capable of returning all of a patient's Assessment and Plan of Treatment information.",
        base_params={"category": "assess-plan"},
        searches=(
            ParamSearch(
                "patient + category + date",
                "A server SHOULD be capable of returning a patient's Assessment and Plan of Treatment information over a specified time period.",
                optional=True,
                derived=(_CAREPLAN_DATE,),
            ),
            ParamSearch(
                "patient + category + status",
                "A server SHOULD be capable returning all of a patient's active Assessment and Plan of Treatment information.",
                optional=True,
                fixed={"status": "active"},
            ),
            ParamSearch(
                "patient + category + status + date",
                "A server SHOULD be capable returning a patient's active Assessment and Plan of Treatment information over a specified time period.",
                optional=True,
                fixed={"status": "active"},
                derived=(_CAREPLAN_DATE,),
            ),
        ),
    ),
    ResourceGroup(
        kind="Condition",
        label="Condition",
        context_key="condition",
        search_label="patient",
        search_description="A server is capable of returning a patients conditions list.",
        searches=(
            ParamSearch(
                "patient + clinicalstatus",
                "A server SHOULD be capable returning all of a patients active problems and health concerns.",
                optional=True,
                fixed={"clinicalstatus": "active,recurrance,remission"},
            ),
            ParamSearch(
                "patient + problem category",
                "A server SHOULD be capable returning all of a patients problems or all of patients health concerns.",
                optional=True,
                fixed={"category": "problem"},
            ),
            ParamSearch(
                "patient + health-concern category",
                "A server SHOULD be capable returning all of a patients problems or all of patients health concerns.",
                optional=True,
                fixed={"category": "health-concern"},
            ),
        ),
    ),
    ResourceGroup(
        kind="Device",
        label="Device",
        context_key="device",
        search_label="patient",
        search_description="A server is capable of returning all Unique device identifier(s)(UDI) for a patient's implanted device(s).",
    ),
    ResourceGroup(
        kind="DocumentReference",
        label="DocumentReference",
        context_key="documentreference",
        search_label="patient",
        search_description="If supporting a direct query, a server SHALL be capable of returning at least the most recent CCD document references and MAY provide most recent references to other document types for a patient.",
        searches=tuple(
            ParamSearch(
                label,
                "If supporting a direct query, A server SHOULD be capable of returning references to CCD documents and MAY provide references to other document types for a patient searched by type and/or date.",
                optional=True,
                derived=derived,
            )
            for label, derived in (
                ("patient + type", (_DOCREF_TYPE,)),
                ("patient + period", (_DOCREF_PERIOD,)),
                ("patient + type + period", (_DOCREF_TYPE, _DOCREF_PERIOD)),
            )
        ),
    ),
    ResourceGroup(
        kind="Goal",
        label="Goal",
        context_key="goal",
        search_label="patient",
        search_description="A server is capable of returning all of a patient's goals.",
        searches=(
            ParamSearch(
                "patient + date",
                "A server is capable of returning all of all of a patient's goals over a specified time period.",
                derived=(
                    Derived(
                        "date",
                        ("statusDate", "targetDate", "startDate"),
                        "Goal statusDate, targetDate, nor startDate returned",
                    ),
                ),
            ),
        ),
    ),
    ResourceGroup(
        kind="Immunization",
        label="Immunization",
        context_key="immunization",
        search_label="patient",
        search_description="A client has connected to a server and fetched all immunizations for a patient.",
    ),
    ResourceGroup(
        kind="DiagnosticReport",
        label="DiagnosticReport",
        context_key="diagnosticreport",
        search_label="patient + category",
        search_description="A server is capable of returning all of a patient's laboratory diagnostic reports queried by category.",
        base_params={"category": "LAB"},
        searches=(
            ParamSearch(
                "patient + category + date",
                "A server is capable of returning all of a patient's laboratory diagnostic reports queried by category code and date range.",
                derived=(_DIAG_DATE,),
            ),
            ParamSearch(
                "patient + category + code",
                "A server is capable of returning all of a patient's laboratory diagnostic reports queried by category and code.",
                derived=(_DIAG_CODE,),
            ),
            ParamSearch(
                "patient + category + code + date",
                "A server SHOULD be capable of returning all of a patient's laboratory diagnostic reports queried by category and one or more codes and date range.",
                optional=True,
                derived=(_DIAG_CODE, _DIAG_DATE),
            ),
        ),
    ),
    ResourceGroup(
        kind="MedicationStatement",
        label="MedicationStatement",
        context_key="medicationstatement",
        search_label="patient",
        search_description="A server is capable of returning a patient's medications.",
    ),
    ResourceGroup(
        kind="MedicationOrder",
        label="MedicationOrder",
        context_key="medicationorder",
        search_label="patient",
        search_description="A server is capable of returning a patient's medications.",
    ),
    ResourceGroup(
        kind="Observation",
        label="Observation Results",
        context_key="observationresults",
        unauthorized_title="Observation Results search without authorization",
        search_label="patient + category",
        search_description="A server is capable of returning all of a patient's laboratory results queried by category.",
        base_params={"category": "laboratory"},
        searches=_LAB_SEARCHES,
        instance_interactions=False,
    ),
    ResourceGroup(
        kind="Observation",
        label="Smoking Status",
        context_key="smokingstatus",
        search_label="patient + code",
        search_description="A server is capable of returning a patient's smoking status.",
        base_params={"code": SMOKING_STATUS_LOINC},
        instance_interactions=False,
    ),
    ResourceGroup(
        kind="Observation",
        label="Vital Signs",
        context_key="vitalsigns",
        search_label="patient + category",
        search_description="A server is capable of returning all of a patient's vital signs that it supports.",
        base_params={"category": "vital-signs"},
        searches=_VITAL_SIGNS_SEARCHES,
        instance_interactions=False,
    ),
    # read/history/vread of the stored laboratory result
    ResourceGroup(
        kind="Observation",
        label="Observation",
        context_key="observationresults",
        search_label="patient",
        search_description="",
        search_interactions=False,
        key_prefix="observation",
    ),
    ResourceGroup(
        kind="Procedure",
        label="Procedure",
        context_key="procedure",
        search_label="patient",
        search_description="A server is capable of returning a patient's procedures.",
        searches=(
            ParamSearch(
                "patient + date",
                "A server is capable of returning all of all of a patient's procedures over a specified time period.",
                derived=(
                    Derived(
                        "date",
                        ("performedDateTime", "performedPeriod.start"),
                        "Procedure performedDateTime or performedPeriod not returned",
                    ),
                ),
            ),
        ),
    ),
)


def register_all(registry) -> None:
    for group in GROUPS:
        register_group(registry, group)


register_all(ARGONAUT_DATA_QUERY.registry)
