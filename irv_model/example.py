import logging

from irv_model.model import Election


def get_example_election():
    """
    Piecu kandidātu vēlēšanas ar 15 zīmēm.

    1. kārtā izslēdz E, tās zīme aiziet pie D.
    2. kārtā C un D ir pa 3 balsīm, abus izslēdz vienlaikus. D zīmju nākamās izvēles
    jau ir izslēgtas, tāpēc tās netiek nodotas nevienam, un B ar 7 balsīm vēl nav vairākums.
    3. kārtā izslēdz A, un B iegūst vairākumu.
    """
    return Election.from_votes(
        candidates=["A", "B", "C", "D", "E"],
        votes=[
            *["ABCDE"] * 5,
            *["BCADE"] * 4,
            *["CBADE"] * 3,
            "DCBAE",
            "DEABC",
            "EDCBA",
        ],
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format="%(message)s")
    election = get_example_election()
    election.select_winner()
