from fastapi import HTTPException

# Codes d'erreur retournés par les services -> (statut HTTP, message)
ERREURS = {
    "demande_introuvable": (404, "Demande introuvable"),
    "notification_introuvable": (404, "Notification introuvable"),
    "signature_introuvable": (404, "Signature introuvable"),
    "utilisateur_introuvable": (404, "Utilisateur introuvable"),
    "acces_refuse": (403, "Accès refusé"),
    "transition_interdite": (409, "Transition de statut interdite"),
    "conflit_statut": (409, "La demande a été modifiée entre-temps, veuillez recharger"),
    "demande_non_terminee": (409, "Seules les demandes validées ou rejetées peuvent être supprimées"),
    "type_inconnu": (400, "Type de demande inconnu"),
    "justification_requise": (400, "Une justification est requise pour ce type de demande"),
    "fichier_requis": (400, "Un fichier est requis"),
    "fichier_vide": (400, "Le fichier est vide"),
    "fichier_trop_volumineux": (400, "Le fichier dépasse la taille maximale de 5 Mo"),
    "format_non_supporte": (400, "Format de fichier non supporté (PDF, JPEG ou PNG)"),
    "document_signe_requis": (400, "Le document signé est requis pour valider la demande"),
    "document_signe_pdf_requis": (400, "Le document signé doit être un PDF"),
    "signature_vide": (400, "La signature est vide"),
    "type_signature_invalide": (400, "Type de signature invalide"),
    "email_deja_utilise": (409, "Cet email est déjà utilisé"),
    "departement_introuvable": (400, "Département introuvable"),
    "role_deja_attribue": (409, "Ce rôle est déjà attribué"),
    "identifiants_invalides": (401, "Email ou mot de passe incorrect"),
    "role_incorrect": (401, "Rôle incorrect pour ce compte"),
    "departement_incorrect": (401, "Département incorrect pour ce compte"),
}


def raise_for_code(code: str):
    status, detail = ERREURS.get(code, (400, code))
    raise HTTPException(status_code=status, detail=detail)
