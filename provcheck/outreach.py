from .logger import get_logger
from .models import EmailDraft, Provider
from .storage import ProviderNotFound, Store

logger = get_logger()

SIGNATURE = "Provider Directory Management Team"


def compose_verification_email(provider: Provider) -> EmailDraft:
    """Build (but do not store) a request asking the provider to confirm their details."""
    name = provider.full_name
    subject = f"Provider Data Verification Request - {name}"
    address_line = " ".join(filter(None, [provider.address_line1, provider.address_line2]))
    locality = f"{provider.city or ''}, {provider.state or ''} {provider.zip_code or ''}".strip()

    body = "\n".join([
        f"Dear {name},",
        "",
        "We are conducting a routine verification of provider information in our healthcare "
        "directory. We have the following information on file and would appreciate your "
        "confirmation or correction of these details:",
        "",
        f"Name: {name}, {provider.credential or ''}".rstrip(", "),
        f"NPI: {provider.npi}",
        f"Specialty: {provider.specialty or 'Not specified'}",
        f"Phone: {provider.phone or 'Not on file'}",
        f"Address: {address_line}",
        f"         {locality}",
        "",
        "Please reply to this email with any corrections or to confirm that the information "
        "above is accurate.",
        "",
        "Thank you for your cooperation in maintaining accurate provider data.",
        "",
        "Best regards,",
        SIGNATURE,
    ])

    return EmailDraft(
        provider_id=provider.id,
        subject=subject,
        body=body,
        recipient_email=provider.email,
    )


def draft_verification_email(store: Store, provider_id: str) -> EmailDraft:
    provider = store.get_provider(provider_id)
    if provider is None:
        raise ProviderNotFound(provider_id)
    draft = store.create_email_draft(compose_verification_email(provider))
    logger.info("Email draft created", provider_id=provider_id, draft_id=draft.id)
    return draft
