"""Qualities, talents and check dice."""

from chatons.models import CheckMode

QUALITIES: dict[str, str] = {
    "costaud": "Costaud",
    "malin": "Malin",
    "mignon": "Mignon",
}

TALENTS: list[str] = [
    "bougerSonPopotin",
    "bricolerDesTrucsEtDesMachins",
    "connaitreLesLoisEtLesLegendes",
    "connaitreLesPaysEtLesPeuples",
    "convaincreEtBaratiner",
    "cueillirEtChasser",
    "cuisiner",
    "dessinerEtPeindre",
    "faireDeLaMusique",
    "faireLesPoches",
    "feulerEtMenacer",
    "griffer",
    "herboriser",
    "lireEtEcrire",
    "lireLeCielEtLesEtoiles",
    "observerEtFouiller",
    "resterCalmeEtImpassible",
    "sOccuperDesBetes",
    "seCacherDansLesOmbres",
    "seDeplacerEnSilence",
    "seduireEtCharmer",
    "soignerBlessuresEtMaladies",
    "trouverSonChemin",
    "trouverUneInformation",
]

# Number of d6 rolled for a check
CHECK_DICE: dict[CheckMode, int] = {
    CheckMode.STANDARD: 3,
    CheckMode.ADVANTAGE: 4,
    CheckMode.DISADVANTAGE: 2,
}

CHECK_FACES = 6
