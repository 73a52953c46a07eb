"""Catalog of USCIS and EOIR forms known to the scraper."""

from typing import Iterable, List, Optional

from .errors import ConfigurationError
from .models import FormInfo, FormSource

_U = FormSource.USCIS
_E = FormSource.EOIR

ALL_FORMS = (
    # USCIS I-Forms
    FormInfo("I-90", "Application to Replace Permanent Resident Card", _U),
    FormInfo("I-102", "Application for Replacement/Initial Nonimmigrant Arrival-Departure Record", _U),
    FormInfo("I-129F", "Petition for Alien Fiancé(e)", _U),
    FormInfo("I-130", "Petition for Alien Relative", _U),
    FormInfo("I-130A", "Supplemental Information for Spouse Beneficiary", _U),
    FormInfo("I-131", "Application for Travel Document", _U),
    FormInfo("I-131A", "Application for Travel Document (Carrier Documentation)", _U),
    FormInfo("I-192", "Application for Advance Permission to Enter as Nonimmigrant", _U),
    FormInfo("I-212", "Application for Permission to Reapply for Admission", _U),
    FormInfo("I-246", "Application for Stay of Deportation or Removal", _U),
    FormInfo("I-290B", "Notice of Appeal or Motion", _U),
    FormInfo("I-360", "Petition for Amerasian, Widow(er), or Special Immigrant", _U),
    FormInfo("I-485", "Application to Register Permanent Residence or Adjust Status", _U),
    FormInfo("I-539", "Application to Extend/Change Nonimmigrant Status", _U),
    FormInfo("I-589", "Application for Asylum and for Withholding of Removal", _U),
    FormInfo("I-601", "Application for Waiver of Grounds of Inadmissibility", _U),
    FormInfo("I-601A", "Application for Provisional Unlawful Presence Waiver", _U),
    FormInfo("I-639", "Application for Waiver (Ineligibility Based on Health)", _U),
    FormInfo("I-730", "Refugee/Asylee Relative Petition", _U),
    FormInfo("I-751", "Petition to Remove Conditions on Residence", _U),
    FormInfo("I-765", "Application for Employment Authorization", _U),
    FormInfo("I-765WS", "I-765 Worksheet", _U),
    FormInfo("I-821", "Application for Temporary Protected Status", _U),
    FormInfo("I-821D", "Consideration of Deferred Action for Childhood Arrivals", _U),
    FormInfo("I-824", "Application for Action on an Approved Application or Petition", _U),
    FormInfo("I-864", "Affidavit of Support Under Section 213A of the INA", _U),
    FormInfo("I-881", "Application for Suspension of Deportation or Special Rule Cancellation", _U),
    FormInfo("I-912", "Request for Fee Waiver", _U),
    FormInfo("I-914", "Application for T Nonimmigrant Status", _U),
    FormInfo("I-914A", "Supplement A to Form I-914", _U, "Also known as I-914 Supplement A"),
    FormInfo("I-918", "Petition for U Nonimmigrant Status", _U),
    FormInfo("I-918A", "Supplement A to Form I-918", _U, "Petition for Qualifying Family Member"),
    FormInfo("I-918B", "Supplement B to Form I-918", _U, "U Nonimmigrant Status Certification"),

    # USCIS N-Forms
    FormInfo("N-336", "Request for Hearing on Decision in Naturalization Proceedings", _U),
    FormInfo("N-400", "Application for Naturalization", _U),
    FormInfo("N-565", "Application for Replacement Naturalization/Citizenship Document", _U),
    FormInfo("N-600", "Application for Certificate of Citizenship", _U),
    FormInfo("N-648", "Medical Certification for Disability Exceptions", _U),

    # USCIS G-Forms
    FormInfo("G-28", "Notice of Entry of Appearance as Attorney or Accredited Representative", _U),
    FormInfo("G-325A", "Biographic Information", _U),

    # USCIS AR-Forms
    FormInfo("AR-11", "Alien's Change of Address Card", _U),

    # EOIR forms (Department of Justice)
    FormInfo("EOIR-26", "Notice of Appeal from a Decision of an Immigration Judge", _E),
    FormInfo("EOIR-27", "Notice of Entry of Appearance as Attorney or Representative Before the BIA", _E),
    FormInfo("EOIR-28", "Notice of Entry of Appearance as Attorney or Representative Before the Immigration Court", _E),
    FormInfo("EOIR-33", "Change of Address Form/Immigration Court", _E),
    FormInfo("EOIR-42A", "Application for Cancellation of Removal for Certain Permanent Residents", _E),
    FormInfo("EOIR-42B", "Application for Cancellation of Removal for Certain Nonpermanent Residents", _E),
    FormInfo("EOIR-59", "Request for Telephonic/Video Conference Appearance", _E),
    FormInfo("EOIR-60", "Application for Temporary Admission", _E),
    FormInfo("EOIR-61", "Motion to Reopen/Reconsider", _E),
)


def find_form(form_number: str, forms: Iterable[FormInfo] = ALL_FORMS) -> Optional[FormInfo]:
    """Find a form by number, ignoring case. Returns None when unknown."""
    wanted = form_number.strip().casefold()
    for form in forms:
        if form.form_number.casefold() == wanted:
            return form
    return None


def parse_source(value: str) -> FormSource:
    try:
        return FormSource(value.strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in FormSource)
        raise ConfigurationError(f"Invalid source '{value}' (expected one of: {valid})") from None


def filter_forms(source: Optional[str] = None, prefix: Optional[str] = None,
                 forms: Iterable[FormInfo] = ALL_FORMS) -> List[FormInfo]:
    """Forms matching an optional source category and form-number prefix.

    An unknown source value is a configuration error; a filter that matches
    nothing is not.
    """
    wanted_source = parse_source(source) if source else None
    wanted_prefix = prefix.casefold() if prefix else None
    result = []
    for form in forms:
        if wanted_source and form.source != wanted_source:
            continue
        if wanted_prefix and not form.form_number.casefold().startswith(wanted_prefix):
            continue
        result.append(form)
    return result


def resolve_forms(form_numbers: Iterable[str]) -> List[FormInfo]:
    """Look up every number, failing once with all the unknown ones listed."""
    found, unknown = [], []
    for number in form_numbers:
        form = find_form(number)
        if form is None:
            unknown.append(number)
        else:
            found.append(form)
    if unknown:
        raise ConfigurationError(f"Unknown form(s): {', '.join(unknown)}")
    return found
