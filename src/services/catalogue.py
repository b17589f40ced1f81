"""Catalogue des types de demande et de l'autorité responsable de chacun."""
from dataclasses import dataclass


ROLES = ("etudiant", "chef_dept", "directeur_prog", "dae", "secretaire_dg", "dg")
ROLES_AUTORITE = ("chef_dept", "directeur_prog", "dae", "secretaire_dg")
# Rôles dont la compétence est limitée au département de l'étudiant
ROLES_DEPARTEMENT = ("chef_dept", "directeur_prog")
ROLE_VALIDATEUR = "dg"


@dataclass(frozen=True)
class TypeDemande:
    id: str
    label: str
    description: str
    autorite: str
    requiert_paiement: bool = False
    requiert_justification: bool = False
    montant: str | None = None


TYPES_DEMANDE: dict[str, TypeDemande] = {
    t.id: t
    for t in (
        TypeDemande("releve", "Relevé de notes", "Document détaillant les notes obtenues aux examens",
                    "chef_dept", requiert_paiement=True, montant="10.000 FG"),
        TypeDemande("inscription", "Attestation d'inscription",
                    "Document officiel confirmant votre statut d'étudiant inscrit", "chef_dept"),
        TypeDemande("reussite", "Attestation de réussite",
                    "Document certifiant la réussite à un niveau d'études", "chef_dept"),
        TypeDemande("reclamation", "Réclamation de notes",
                    "Demande de vérification de notes pour les filières DL et NTIC",
                    "directeur_prog", requiert_justification=True),
        TypeDemande("stage", "Demande de Stage", "Demande pour effectuer un stage professionnel",
                    "dae", requiert_justification=True),
        TypeDemande("suspension", "Suspension d'Études", "Demande d'interruption temporaire des études",
                    "directeur_prog", requiert_justification=True),
        TypeDemande("absence", "Absence Prolongée", "Justification d'une absence de longue durée",
                    "chef_dept", requiert_justification=True),
        TypeDemande("diplome", "Diplôme / Certificat Final",
                    "Document officiel attestant de l'obtention du diplôme",
                    "secretaire_dg", requiert_paiement=True, montant="50.000 FG"),
        TypeDemande("reinscription", "(Ré)Inscription Administrative",
                    "Procédure annuelle d'enregistrement administratif",
                    "secretaire_dg", requiert_paiement=True, montant="20.000 FG"),
        TypeDemande("conge", "Congé Académique",
                    "Suspension officielle des études pour une période déterminée",
                    "directeur_prog", requiert_justification=True),
        TypeDemande("changement", "Changement de Filière",
                    "Demande de transfert vers une autre spécialité d'études",
                    "directeur_prog", requiert_justification=True),
        TypeDemande("recommandation", "Lettre de Recommandation",
                    "Attestation des qualités académiques par un responsable",
                    "chef_dept", requiert_justification=True),
        TypeDemande("convention", "Convention de Stage",
                    "Accord officiel entre l'université et l'entreprise d'accueil",
                    "dae", requiert_justification=True),
    )
}


def get_type(type_id: str) -> TypeDemande | None:
    return TYPES_DEMANDE.get(type_id)


def autorite_pour(type_id: str) -> str | None:
    t = TYPES_DEMANDE.get(type_id)
    return t.autorite if t else None


def types_pour_role(role: str) -> list[str]:
    """Types de demande dont le rôle donné est l'autorité de traitement."""
    return [t.id for t in TYPES_DEMANDE.values() if t.autorite == role]
