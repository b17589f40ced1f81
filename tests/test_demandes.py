import pytest

from conftest import PDF, PNG, headers
from src.models.demande import Demande
from src.models.log_suivi import LogSuivi
from src.models.notification import Notification
from src.models.piece_jointe import PieceJointe
from src.models.validation import Validation
from src.security.rbac import load_access
from src.services import demandes as svc
from src.services import journal, mailer
from src.services.mailer import EnvoiResultat
from src.services.workflow import Action, Statut


def _notifs(db, user):
    db.expire_all()
    return db.query(Notification).filter(Notification.user_id == user.id).order_by(Notification.id).all()


# -------------------- Soumission --------------------
def test_soumission_releve_dl(client, db, users, soumettre, courriels):
    r = soumettre(users["etudiant"], fichiers=[("paiement.pdf", PDF, "application/pdf")])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["avertissements"] == []
    demande = body["demande"]
    assert demande["statut"] == "en_attente"
    assert demande["titre"] == "Relevé de notes"
    assert demande["departement_id"] == users["etudiant"].departement_id

    # seul le chef de département DL est notifié
    assert len(_notifs(db, users["chef_dl"])) == 1
    assert _notifs(db, users["chef_ntic"]) == []
    assert len(_notifs(db, users["etudiant"])) == 1
    destinataires = sorted(c["to"] for c in courriels)
    assert destinataires == sorted([users["etudiant"].email, users["chef_dl"].email])

    pieces = db.query(PieceJointe).filter(PieceJointe.demande_id == demande["id"]).all()
    assert [(p.type, p.nom_fichier) for p in pieces] == [("student_upload", "paiement.pdf")]
    log = db.query(LogSuivi).filter(LogSuivi.demande_id == demande["id"]).one()
    assert log.etat == "en_attente"
    assert log.message == "Demande soumise par Awa Camara"


def test_soumission_sans_autorite(client, db, users, soumettre):
    # aucun directeur de programme en NTIC
    r = soumettre(users["etudiant_ntic"], "reclamation", justification="Erreur de saisie en algèbre")
    assert r.status_code == 201
    assert r.json()["avertissements"] == [svc.AVERTISSEMENT_SANS_AUTORITE]
    assert _notifs(db, users["directeur_dl"]) == []


def test_soumission_autorite_hors_departement(client, db, users, soumettre):
    r = soumettre(users["etudiant_ntic"], "stage", justification="Stage chez Orange Guinée")
    assert r.status_code == 201
    assert r.json()["avertissements"] == []
    assert len(_notifs(db, users["dae"])) == 1


def test_justification_requise(client, users, soumettre):
    r = soumettre(users["etudiant"], "absence", justification="   ")
    assert r.status_code == 400
    assert "justification" in r.json()["detail"]


@pytest.mark.parametrize(
    "fichier, detail",
    [
        (("notes.docx", b"contenu", "application/octet-stream"), "Format"),
        (("gros.pdf", b"0" * (5 * 1024 * 1024 + 1), "application/pdf"), "5 Mo"),
    ],
)
def test_soumission_fichier_refuse(client, db, users, soumettre, fichier, detail):
    r = soumettre(users["etudiant"], fichiers=[fichier])
    assert r.status_code == 400
    assert detail in r.json()["detail"]
    assert db.query(Demande).count() == 0


def test_soumission_reservee_aux_etudiants(client, users, soumettre):
    assert soumettre(users["chef_dl"]).status_code == 403
    assert client.post("/demandes", data={"type": "releve", "license_level": "L1"}).status_code == 401


def test_soumission_niveau_invalide(client, users, soumettre):
    assert soumettre(users["etudiant"], license_level="M1").status_code == 422


def test_echec_email_ne_bloque_pas(client, db, users, soumettre, monkeypatch):
    monkeypatch.setattr(mailer, "send_email", lambda *a, **k: EnvoiResultat(success=False, error="boom"))
    r = soumettre(users["etudiant"])
    assert r.status_code == 201
    avertissements = r.json()["avertissements"]
    assert len(avertissements) == 2
    assert all("boom" in a for a in avertissements)
    assert len(_notifs(db, users["chef_dl"])) == 1


def _mailer_en_echec(*args, **kwargs):
    return EnvoiResultat(success=False, error="boom")


def _mailer_en_panne(*args, **kwargs):
    # ce que lève smtplib.login avec un mot de passe accentué
    raise UnicodeEncodeError("ascii", "motdepasse-été", 11, 12, "boom")


def test_email_en_panne_ne_bloque_pas_la_soumission(client, db, users, soumettre, monkeypatch):
    monkeypatch.setattr(mailer, "send_email", _mailer_en_panne)
    r = soumettre(users["etudiant"])
    assert r.status_code == 201, r.text
    avertissements = r.json()["avertissements"]
    assert len(avertissements) == 2
    assert all("boom" in a for a in avertissements)
    assert db.query(Demande).count() == 1
    assert len(_notifs(db, users["chef_dl"])) == 1


def _traiter(client, users, demande_id):
    return client.post(
        f"/traitement/demandes/{demande_id}",
        files={"fichier": ("releve-traite.pdf", PDF, "application/pdf")},
        headers=headers(users["chef_dl"]),
    )


def _valider(client, users, demande_id):
    return client.post(
        f"/validation/demandes/{demande_id}/valider",
        files={"fichier": ("releve-signe.pdf", PDF, "application/pdf")},
        headers=headers(users["dg"]),
    )


def _rejeter(client, users, demande_id):
    return client.post(
        f"/validation/demandes/{demande_id}/rejeter", json={"motif": "Incomplet"}, headers=headers(users["dg"])
    )


@pytest.mark.parametrize("envoi", [_mailer_en_echec, _mailer_en_panne], ids=["echec", "exception"])
@pytest.mark.parametrize(
    "etape, statut, destinataires",
    [
        (_traiter, "en_traitement", {"etudiant", "dg", "dg2"}),
        (_valider, "validee", {"etudiant", "chef_dl"}),
        (_rejeter, "rejetee", {"etudiant", "chef_dl"}),
    ],
    ids=["traitement", "validation", "rejet"],
)
def test_echec_email_ne_bloque_pas_la_transition(client, db, users, soumettre, monkeypatch, envoi, etape, statut, destinataires):
    demande_id = soumettre(users["etudiant"]).json()["demande"]["id"]
    if etape is not _traiter:
        assert _traiter(client, users, demande_id).status_code == 200
    dernier_id = db.query(Notification).order_by(Notification.id.desc()).first().id

    monkeypatch.setattr(mailer, "send_email", envoi)
    r = etape(client, users, demande_id)
    assert r.status_code == 200, r.text
    assert r.json()["demande"]["statut"] == statut
    avertissements = r.json()["avertissements"]
    assert avertissements and all("boom" in a for a in avertissements)

    db.expire_all()
    assert db.get(Demande, demande_id).statut == statut
    nouvelles = db.query(Notification).filter(Notification.id > dernier_id).all()
    ids = {u.id: cle for cle, u in users.items()}
    assert {ids[n.user_id] for n in nouvelles} == destinataires
    assert all(n.demande_id == demande_id and not n.lue for n in nouvelles)


def test_email_invalide_ignore(client, db, users, soumettre, courriels):
    users["chef_dl"].email = "chef-sans-arobase"
    db.commit()
    r = soumettre(users["etudiant"])
    assert r.status_code == 201
    assert any("invalide" in a for a in r.json()["avertissements"])
    assert [c["to"] for c in courriels] == [users["etudiant"].email]
    assert len(_notifs(db, users["chef_dl"])) == 1


# -------------------- Traitement --------------------
def test_traitement(client, db, users, soumettre, courriels):
    demande_id = soumettre(users["etudiant"]).json()["demande"]["id"]
    courriels.clear()
    r = client.post(
        f"/traitement/demandes/{demande_id}",
        files={"fichier": ("releve.pdf", PDF, "application/pdf")},
        headers=headers(users["chef_dl"]),
    )
    assert r.status_code == 200, r.text
    assert r.json()["demande"]["statut"] == "en_traitement"

    etudiant = _notifs(db, users["etudiant"])
    assert any("en cours de traitement" in n.message for n in etudiant)
    assert len(_notifs(db, users["dg"])) == 1
    assert len(_notifs(db, users["dg2"])) == 1
    assert sorted(c["to"] for c in courriels) == sorted(
        [users["etudiant"].email, users["dg"].email, users["dg2"].email]
    )
    types = [p.type for p in db.query(PieceJointe).filter(PieceJointe.demande_id == demande_id)]
    assert types == ["processed"]
    assert journal.dernier_traitant(db, demande_id) == users["chef_dl"].id


def test_traitement_autre_departement_refuse(client, users, soumettre):
    demande_id = soumettre(users["etudiant"]).json()["demande"]["id"]
    for user in (users["chef_ntic"], users["directeur_dl"]):
        r = client.post(
            f"/traitement/demandes/{demande_id}",
            files={"fichier": ("releve.pdf", PDF, "application/pdf")},
            headers=headers(user),
        )
        assert r.status_code == 403


def test_traitement_sans_fichier(client, users, soumettre):
    demande_id = soumettre(users["etudiant"]).json()["demande"]["id"]
    r = client.post(f"/traitement/demandes/{demande_id}", headers=headers(users["chef_dl"]))
    assert r.status_code == 400


def test_traitement_deux_fois(client, users, demande_en_traitement):
    r = client.post(
        f"/traitement/demandes/{demande_en_traitement}",
        files={"fichier": ("releve.pdf", PDF, "application/pdf")},
        headers=headers(users["chef_dl"]),
    )
    assert r.status_code == 409


def test_traitement_echec_supprime_fichier(client, db, users, soumettre, stockage_tmp, monkeypatch):
    demande_id = soumettre(users["etudiant"]).json()["demande"]["id"]

    def boom(*args, **kwargs):
        raise RuntimeError("base indisponible")

    monkeypatch.setattr(journal, "ecrire_log", boom)
    access = svc.Access(users["chef_dl"].id, "chef_dept", "Mariama Bah", users["chef_dl"].email, users["chef_dl"].departement_id)
    with pytest.raises(RuntimeError):
        svc.traiter_demande(db, access, demande_id, ("releve.pdf", PDF))
    assert list((stockage_tmp / "demandes" / str(demande_id)).iterdir()) == []
    db.expire_all()
    assert db.get(Demande, demande_id).statut == "en_attente"


def test_changement_statut_conditionnel(db, users):
    d = Demande(titre="Relevé de notes", type="releve", etudiant_id=users["etudiant"].id, statut="rejetee")
    db.add(d)
    db.commit()
    with pytest.raises(svc.ConflitStatut):
        svc._changer_statut(db, d.id, Statut.EN_ATTENTE, Statut.EN_TRAITEMENT)
    db.rollback()


def test_liste_par_perimetre(client, users, soumettre):
    soumettre(users["etudiant"])
    soumettre(users["etudiant_ntic"])
    r = client.get("/traitement/demandes", headers=headers(users["chef_dl"]))
    assert r.status_code == 200
    assert r.json()["total"] == 1
    r = client.get("/demandes", headers=headers(users["etudiant_ntic"]))
    assert [d["departement_id"] for d in r.json()["demandes"]] == [users["etudiant_ntic"].departement_id]
    assert client.get("/demandes", headers=headers(users["dg"])).json()["total"] == 2


# -------------------- Validation finale --------------------
def test_validation(client, db, users, demande_en_traitement, courriels):
    courriels.clear()
    r = client.post(
        f"/validation/demandes/{demande_en_traitement}/valider",
        files={"fichier": ("releve-signe.pdf", PDF, "application/pdf")},
        headers=headers(users["dg"]),
    )
    assert r.status_code == 200, r.text
    assert r.json()["demande"]["statut"] == "validee"

    signe = db.query(PieceJointe).filter(PieceJointe.demande_id == demande_en_traitement, PieceJointe.type == "signed").one()
    assert signe.nom_fichier == f"signed-{demande_en_traitement}.pdf"
    assert signe.url.startswith("http://test/fichiers/demandes/")
    validation = db.query(Validation).filter(Validation.demande_id == demande_en_traitement).one()
    assert validation.decision == "valide"

    msg_etudiant = _notifs(db, users["etudiant"])[-1].message
    assert "a été validée" in msg_etudiant and signe.url in msg_etudiant
    # le chef DL est à la fois dernier traitant et chef du département
    messages_chef = [n.message for n in _notifs(db, users["chef_dl"])]
    assert any("validée par le DG." in m for m in messages_chef)
    assert any("Le document signé est disponible ici" in m for m in messages_chef)
    assert _notifs(db, users["chef_ntic"]) == []


def test_validation_retrait_en_personne(client, db, users, soumettre):
    demande_id = soumettre(users["etudiant"], delivery_method="in_person").json()["demande"]["id"]
    client.post(
        f"/traitement/demandes/{demande_id}",
        files={"fichier": ("releve.pdf", PDF, "application/pdf")},
        headers=headers(users["chef_dl"]),
    )
    r = client.post(
        f"/validation/demandes/{demande_id}/valider",
        files={"fichier": ("signe.pdf", PDF, "application/pdf")},
        headers=headers(users["dg"]),
    )
    assert r.status_code == 200
    assert "en personne" in _notifs(db, users["etudiant"])[-1].message


def test_validation_exige_pdf(client, db, users, demande_en_traitement):
    url = f"/validation/demandes/{demande_en_traitement}/valider"
    assert client.post(url, headers=headers(users["dg"])).status_code == 400
    r = client.post(url, files={"fichier": ("signe.png", PNG, "image/png")}, headers=headers(users["dg"]))
    assert r.status_code == 400
    assert "PDF" in r.json()["detail"]
    db.expire_all()
    assert db.get(Demande, demande_en_traitement).statut == "en_traitement"
    assert db.query(Validation).count() == 0


def test_validation_reservee_au_dg(client, users, demande_en_traitement):
    r = client.post(
        f"/validation/demandes/{demande_en_traitement}/valider",
        files={"fichier": ("signe.pdf", PDF, "application/pdf")},
        headers=headers(users["secretaire"]),
    )
    assert r.status_code == 403


def test_validation_demande_en_attente(client, users, soumettre):
    demande_id = soumettre(users["etudiant"]).json()["demande"]["id"]
    r = client.post(f"/validation/demandes/{demande_id}/rejeter", json={"motif": "x"}, headers=headers(users["dg"]))
    assert r.status_code == 409


def test_rejet_document_illisible(client, db, users, demande_en_traitement):
    r = client.post(
        f"/validation/demandes/{demande_en_traitement}/rejeter",
        json={"motif": "Document illisible"},
        headers=headers(users["dg"]),
    )
    assert r.status_code == 200
    assert r.json()["demande"]["statut"] == "rejetee"
    validation = db.query(Validation).filter(Validation.demande_id == demande_en_traitement).one()
    assert (validation.decision, validation.motif) == ("rejete", "Document illisible")
    assert "Motif : Document illisible" in _notifs(db, users["etudiant"])[-1].message
    assert "rejetée par le DG: Document illisible" in _notifs(db, users["chef_dl"])[-1].message


def test_rejet_sans_motif(client, db, users, demande_en_traitement):
    r = client.post(
        f"/validation/demandes/{demande_en_traitement}/rejeter", json={}, headers=headers(users["dg"])
    )
    assert r.status_code == 200
    assert db.query(Validation).one().motif == "Non spécifié"


# -------------------- Annulation / suppression --------------------
def test_annulation_par_etudiant(client, db, users, soumettre):
    demande_id = soumettre(users["etudiant"]).json()["demande"]["id"]
    assert client.post(f"/demandes/{demande_id}/annuler", headers=headers(users["etudiant_ntic"])).status_code == 403
    r = client.post(f"/demandes/{demande_id}/annuler", headers=headers(users["etudiant"]))
    assert r.status_code == 200
    assert r.json()["demande"]["statut"] == "rejetee"
    log = db.query(LogSuivi).filter(LogSuivi.demande_id == demande_id, LogSuivi.etat == "rejetee").one()
    assert log.message == "Demande annulée par l'étudiant Awa Camara"
    assert db.query(Validation).count() == 0
    # plus annulable une seconde fois
    assert client.post(f"/demandes/{demande_id}/annuler", headers=headers(users["etudiant"])).status_code == 409


def test_annulation_apres_traitement(client, users, demande_en_traitement):
    r = client.post(f"/demandes/{demande_en_traitement}/annuler", headers=headers(users["etudiant"]))
    assert r.status_code == 409


def test_suppression(client, db, users, demande_en_traitement):
    url = f"/demandes/{demande_en_traitement}"
    assert client.delete(url, headers=headers(users["etudiant"])).status_code == 409

    client.post(f"{url.replace('/demandes', '/validation/demandes')}/rejeter", json={"motif": "Incomplet"}, headers=headers(users["dg"]))
    client.post(f"{url}/messages", json={"content": "Pourquoi ?"}, headers=headers(users["etudiant"]))
    assert client.delete(url, headers=headers(users["etudiant_ntic"])).status_code == 403

    r = client.delete(url, headers=headers(users["etudiant"]))
    assert r.status_code == 200
    assert client.get(url, headers=headers(users["etudiant"])).status_code == 404
    db.expire_all()
    assert db.query(PieceJointe).filter(PieceJointe.demande_id == demande_en_traitement).count() == 0
    assert db.query(Validation).filter(Validation.demande_id == demande_en_traitement).count() == 0
    etats = [log.etat for log in journal.list_logs(db, demande_en_traitement)]
    assert etats == ["en_attente", "en_traitement", "rejetee", "supprimee"]


def test_detail(client, users, demande_en_traitement):
    r = client.get(f"/demandes/{demande_en_traitement}", headers=headers(users["etudiant"]))
    assert r.status_code == 200
    body = r.json()
    assert [p["type"] for p in body["pieces_jointes"]] == ["processed"]
    assert [log["etat"] for log in body["logs_suivi"]] == ["en_attente", "en_traitement"]
    assert body["actions"] == []
    assert client.get(f"/demandes/{demande_en_traitement}", headers=headers(users["dg"])).json()["actions"] == ["valider", "rejeter"]
    assert client.get(f"/demandes/{demande_en_traitement}", headers=headers(users["etudiant_ntic"])).status_code == 403
    assert client.get(f"/demandes/{demande_en_traitement}", headers=headers(users["dg"])).status_code == 200
    assert client.get("/demandes/999", headers=headers(users["dg"])).status_code == 404


def test_types_demande(client):
    r = client.get("/types-demande")
    assert r.status_code == 200
    types = {t["id"]: t for t in r.json()}
    assert types["releve"]["autorite"] == "chef_dept"
    assert types["releve"]["requiert_paiement"] is True


def test_peut_agir_selon_acteurs(db, users):
    demande = Demande(titre="Relevé de notes", type="releve", etudiant_id=users["etudiant"].id,
                      departement_id=users["etudiant"].departement_id, statut="en_attente")
    acces = {cle: load_access(db, u.id) for cle, u in users.items()}
    assert svc.peut_agir(acces["etudiant"], Action.SOUMETTRE)
    assert not svc.peut_agir(acces["chef_dl"], Action.SOUMETTRE)
    assert svc.peut_agir(acces["etudiant"], Action.ANNULER, demande)
    assert not svc.peut_agir(acces["etudiant_ntic"], Action.ANNULER, demande)
    assert svc.peut_agir(acces["chef_dl"], Action.TRAITER, demande)
    assert not svc.peut_agir(acces["chef_ntic"], Action.TRAITER, demande)
    assert not svc.peut_agir(acces["dg"], Action.TRAITER, demande)
    assert svc.peut_agir(acces["dg2"], Action.REJETER, demande)
    assert not svc.peut_agir(acces["chef_dl"], Action.VALIDER, demande)
