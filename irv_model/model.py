import dataclasses
import logging
from typing import Iterable, Literal, Self, Sequence

logger = logging.getLogger(__name__)

BallotId = str
CandidateIdx = int
Status = Literal["running", "elected", "eliminated"]
TieRule = Literal["divisible", "equal_votes"]


class ElectionError(Exception):
    pass


class InvalidBallot(ElectionError, ValueError):
    """
    Vēlēšanu zīme nav skaitļu 1..N permutācija, kur N ir kandidātu skaits.
    """


class CapacityExceeded(ElectionError):
    """
    Mēģināts reģistrēt vairāk kandidātu, nekā paredzēts vēlēšanās.
    """


class SlateIncomplete(ElectionError):
    """
    Vēlēšanu zīmes var pieņemt tikai tad, kad visi kandidāti ir reģistrēti.
    """


@dataclasses.dataclass
class Ballot:
    """
    Vēlēšanu zīme.

    `ranks[i]` ir vieta, ko vēlētājs piešķīris kandidātam ar indeksu `i` (1 = labākais).
    Vietas pēc izveides nemainās. Mainās tikai `excluded`: kandidāti, kuri šajā zīmē
    vairs netiek ņemti vērā, jo ir izslēgti. To drīkst mainīt tikai `Election`.
    """
    id: BallotId
    ranks: tuple[int, ...]
    excluded: set[CandidateIdx] = dataclasses.field(default_factory=set)

    @property
    def top_choice(self) -> CandidateIdx | None:
        """
        Kandidāts ar mazāko vietu starp tiem, kas nav izslēgti.
        Pārējo kandidātu savstarpējā secība no izslēgšanas nemainās.
        """
        best = None
        for candidate_idx, rank in enumerate(self.ranks):
            if candidate_idx in self.excluded:
                continue
            if best is None or rank < self.ranks[best]:
                best = candidate_idx
        return best

    @property
    def prefs(self) -> tuple[CandidateIdx, ...]:
        return tuple(sorted(range(len(self.ranks)), key=lambda idx: self.ranks[idx]))

    def exclude(self, candidate_idx: CandidateIdx):
        self.excluded.add(candidate_idx)


@dataclasses.dataclass
class Candidate:
    """
    Kandidāta stāvoklis cauri skaitīšanas kārtām.
    """
    name: str
    status: Status = "running"

    # Kaudze: vēlēšanu zīmes, kurās šis kandidāts ir augstākā vēl aktīvā izvēle.
    ballots: list[Ballot] = dataclasses.field(default_factory=list)

    # Kaudzes lielums katras kārtas beigās.
    tallies: list[int] = dataclasses.field(default_factory=list)

    # Balsu skaits pēc pirmo izvēļu saskaitīšanas, pirms jebkādas pārdales.
    tally_after_first: int = 0

    @property
    def votes(self) -> int:
        return len(self.ballots)

    @property
    def is_elected(self) -> bool:
        return self.status == "elected"

    @property
    def is_running(self) -> bool:
        return self.status == "running"

    @property
    def is_eliminated(self) -> bool:
        return self.status == "eliminated"


@dataclasses.dataclass
class CandidateLog:
    idx: CandidateIdx
    round_no: int = None
    status: Status = None
    votes: int = 0
    transfer: int = 0


class Election:
    """
    Vēlēšanas ar vienu mandātu, balsis skaita pēc tūlītējās pārbalsošanas (IRV) metodes.

    Katrā kārtā izslēdz visus kandidātus ar mazāko balsu skaitu vienlaikus un viņu
    vēlēšanu zīmes pārdala katras zīmes nākamajai izvēlei (ja tā vēl ir aktīva), līdz kāds iegūst
    vairāk nekā pusi no visām zīmēm, paliek viens pats vai atlikušie ir neizšķirtā.
    """

    @classmethod
    def from_votes(
        cls,
        *,
        candidates: Sequence[str],
        votes: Iterable[Sequence[str]],
        tie_rule: TieRule = "divisible",
    ) -> Self:
        """
        Izveido vēlēšanas no kandidātu vārdiem un balsīm, kur katra balss ir pilns
        kandidātu vārdu saraksts preferenču secībā, piemēram, ["B", "A", "C"] vai "BAC".
        """
        election = cls(num_candidates=len(candidates), tie_rule=tie_rule)
        for name in candidates:
            election.add_candidate(name)

        index = {name: idx for idx, name in enumerate(candidates)}
        for prefs in votes:
            unknown = [name for name in prefs if name not in index]
            if unknown:
                raise InvalidBallot(f"Nezināmi kandidāti: {unknown!r}")
            # Nepilnā balsī paliks nulles, un add_ballot to noraidīs.
            ranks = [0] * len(candidates)
            for rank, name in enumerate(prefs, start=1):
                if ranks[index[name]]:
                    raise InvalidBallot(f"Kandidāts {name!r} balsī norādīts vairākkārt.")
                ranks[index[name]] = rank
            election.add_ballot(ranks)
        return election

    def __init__(self, *, num_candidates: int, tie_rule: TieRule = "divisible"):
        if num_candidates < 1:
            raise ValueError("Vēlēšanās jābūt vismaz vienam kandidātam.")
        if tie_rule not in ("divisible", "equal_votes"):
            raise ValueError(f"Nezināms neizšķirta noteikums: {tie_rule!r}")

        self.num_candidates = num_candidates
        self.tie_rule = tie_rule

        # Visi kandidāti reģistrācijas secībā. Indekss sarakstā ir kandidāta identitāte.
        # Izslēgtie kandidāti paliek sarakstā.
        self.candidates: list[Candidate] = []

        # Visas vēlēšanu zīmes
        self.ballots: dict[BallotId, Ballot] = {}

        # Visu jebkad nodoto zīmju skaits. Vairākuma saucējs visai skaitīšanai.
        self.total_ballots = 0

        # Zīmes, kuru nākamā izvēle pārdales brīdī jau bija izslēgta.
        self.exhausted: list[Ballot] = []

        self.winners: list[str] = []

        # Pašreizējā skaitīšanas kārta, numurēta no 0.
        # "-1" nozīmē, ka skaitīšana vēl nav sākusies.
        self._round_idx = -1

        # Notikumi katrā kārtā (demonstrācijas nolūkiem)
        self.event_logs: dict[int, list[str]] = {}

        # Kandidātu stāvoklis katras kārtas beigās (demonstrācijas nolūkiem)
        self.candidate_logs: dict[int, dict[CandidateIdx, CandidateLog]] = {}

    def add_candidate(self, name: str) -> CandidateIdx:
        if len(self.candidates) >= self.num_candidates:
            raise CapacityExceeded(
                f"Nevar reģistrēt {name!r}: visas {self.num_candidates} kandidātu vietas ir aizņemtas."
            )
        assert all(c.name != name for c in self.candidates), f"Kandidāts {name!r} jau reģistrēts."
        self.candidates.append(Candidate(name=name))
        return len(self.candidates) - 1

    def add_ballot(self, ranks: Sequence[int]) -> Ballot:
        if len(self.candidates) < self.num_candidates:
            raise SlateIncomplete(
                f"Reģistrēti {len(self.candidates)} no {self.num_candidates} kandidātiem."
            )
        if not self.is_ballot_valid(ranks):
            raise InvalidBallot(f"Nederīga vēlēšanu zīme: {list(ranks)!r}")

        ballot = Ballot(id=str(self.total_ballots + 1), ranks=tuple(ranks))
        self.ballots[ballot.id] = ballot
        self.candidates[ballot.top_choice].ballots.append(ballot)
        self.total_ballots += 1
        return ballot

    def is_ballot_valid(self, ranks: Sequence[int]) -> bool:
        """
        Derīgā zīmē ir tieši N vietas, un katrs skaitlis no 1 līdz N parādās tieši vienreiz.
        """
        if len(ranks) != self.num_candidates:
            return False
        if not all(isinstance(rank, int) and not isinstance(rank, bool) for rank in ranks):
            return False
        return sorted(ranks) == list(range(1, self.num_candidates + 1))

    def reset(self):
        """
        Atiestata skaitīšanas stāvokli, lai varētu sākt no jauna.
        """
        self._round_idx = -1
        self.exhausted = []
        self.winners = []
        self.event_logs = {}
        self.candidate_logs = {}

        for candidate in self.candidates:
            candidate.status = "running"
            candidate.ballots = []
            candidate.tallies = []
            candidate.tally_after_first = 0

        for ballot in self.ballots.values():
            ballot.excluded.clear()
            self.candidates[ballot.top_choice].ballots.append(ballot)

    def select_winner(self) -> list[str]:
        """
        Galvenā skaitīšana. Atgriež uzvarētāja vārdu vai, neizšķirta gadījumā,
        visu neizšķirtā palikušo kandidātu vārdus reģistrācijas secībā.
        """
        assert self.round_no == 0, "Skaitīšanu var veikt tikai vienu reizi. Izmanto reset()."
        if len(self.candidates) < self.num_candidates:
            raise SlateIncomplete(
                f"Reģistrēti {len(self.candidates)} no {self.num_candidates} kandidātiem."
            )

        logger.info(
            f"Sākam skaitīšanu. "
            f"Kandidāti: {self.num_candidates}, "
            f"vēlēšanu zīmes: {self.total_ballots}, "
            f"vairākumam vajag vairāk par {self.quota}."
        )
        for candidate in self.candidates:
            candidate.tally_after_first = candidate.votes

        while not self.winners:
            self._run_round()

        self.log_event(f"Skaitīšana pabeigta {self.round_no} kārtā(s).")
        return list(self.winners)

    def _run_round(self):
        """
        Veic vienu skaitīšanas kārtu.
        """
        self._do_run_round()
        self.tally()
        self._collect_round_log()
        self._log_counts()
        logger.info("********************************************************************")

    def _do_run_round(self):
        """
        Neizsaukt pa tiešo!
        """
        self._round_idx += 1
        self.event_logs.setdefault(self._round_idx, [])

        running = self.running_candidates
        assert running, "Nav neviena aktīva kandidāta."

        if len(running) == 1:
            # Vienīgo atlikušo kandidātu neizslēdzam, pat ja viņš formāli ir "mazākais".
            self._declare_winners(running, reason="vienīgais atlikušais kandidāts")
            return

        # Visi kandidāti ar mazāko balsu skaitu tiek izslēgti vienlaikus, nevis pa vienam.
        min_votes = min(c.votes for c in running)
        to_eliminate = [
            idx
            for idx, c in enumerate(self.candidates)
            if c.is_running and c.votes == min_votes
        ]

        if len(to_eliminate) == len(running):
            logger.warning(f"Visiem {len(running)} aktīvajiem kandidātiem ir pa {min_votes} balsīm.")
            self._declare_winners(running, reason="neizšķirts")
            return

        # Visus šīs kārtas izslēdzamos atzīmē pirms pārdales. Zīme, kuras nākamā izvēle
        # izslēgta šajā pašā kārtā, netiek nodota nevienam.
        for idx in to_eliminate:
            self.candidates[idx].status = "eliminated"

        for idx in to_eliminate:
            self.eliminate(idx)

        self._check_winners()

    def _check_winners(self):
        majority = [c for c in self.candidates if c.votes > self.quota]
        if majority:
            self._declare_winners(majority, reason="vairākums")
            return

        running = self.running_candidates
        if len(running) == 1:
            self._declare_winners(running, reason="vienīgais atlikušais kandidāts")
        elif len(running) > 1 and self.is_tie():
            self._declare_winners(running, reason="neizšķirts")

    def _declare_winners(self, candidates: list[Candidate], *, reason: str):
        for candidate in candidates:
            candidate.status = "elected"
            self.winners.append(candidate.name)
            self.log_event(f"Kandidāts {candidate.name!r} uzvar ar {candidate.votes} balsīm ({reason}).")

        if len(candidates) > 1:
            logger.warning(f"Neizšķirts starp {', '.join(repr(c.name) for c in candidates)}.")

    def is_tie(self) -> bool:
        running = self.running_candidates
        if not running:
            return False

        if self.tie_rule == "equal_votes":
            return len({c.votes for c in running}) == 1

        # "divisible": salīdzina tikai kopējo zīmju skaitu ar aktīvo kandidātu skaitu,
        # nevis kandidātu balsis savā starpā.
        return self.total_ballots % self.num_running == 0

    def eliminate(self, candidate_idx: CandidateIdx):
        candidate = self.candidates[candidate_idx]
        candidate.status = "eliminated"
        self.log_event(f"Kandidāts {candidate.name!r} izslēgts ar {candidate.votes} balsīm.")

        pile = candidate.ballots
        candidate.ballots = []  # Iztukšojam kaudzi pilnībā.

        for ballot in pile:
            ballot.exclude(candidate_idx)
            self._transfer(ballot)

    def _transfer(self, ballot: Ballot) -> Candidate | None:
        """
        Nodod zīmi tās augstākajai izvēlei pēc izslēgšanas. Ja arī tā jau ir izslēgta,
        zīme turpmākajā skaitīšanā vairs nepiedalās.
        """
        candidate_idx = ballot.top_choice
        if candidate_idx is not None:
            candidate = self.candidates[candidate_idx]
            if candidate.is_running:
                candidate.ballots.append(ballot)
                logger.debug(f"Zīme {ballot.id} pārdalīta par labu {candidate.name!r}.")
                return candidate

        self.exhausted.append(ballot)
        self.log_event(f"Zīmes {ballot.id} nākamā izvēle vairs nav aktīva.")
        logger.warning(f"Zīme {ballot.id} izslēgta no turpmākās skaitīšanas.")
        return None

    def tally(self):
        """
        Pieraksta katra kandidāta balsu skaitu pašreizējā kārtā.
        Ir droši izsaukt vairākas reizes vienas kārtas laikā.
        """
        for candidate in self.candidates:
            if len(candidate.tallies) < self.round_no:
                candidate.tallies.append(candidate.votes)
            else:
                candidate.tallies[self._round_idx] = candidate.votes

    def _collect_round_log(self):
        logs = self.candidate_logs.setdefault(self._round_idx, {})
        for candidate_idx, candidate in enumerate(self.candidates):
            previous = candidate.tallies[-2] if len(candidate.tallies) > 1 else candidate.tally_after_first
            logs[candidate_idx] = CandidateLog(
                idx=candidate_idx,
                round_no=self.round_no,
                status=candidate.status,
                votes=candidate.votes,
                transfer=candidate.votes - previous,
            )

    def _log_counts(self):
        for candidate in self.candidates:
            logger.info(
                f"{candidate.name}: {candidate.votes} "
                f"{'✅ UZVAR' if candidate.is_elected else ''}"
                f"{'❌ IZSLĒGTS' if candidate.is_eliminated else ''}"
            )

    @property
    def round_no(self) -> int:
        return self._round_idx + 1

    @property
    def quota(self) -> int:
        """
        Uzvarai vajag vairāk balsu nekā šis skaitlis.
        """
        return self.total_ballots // 2

    @property
    def running_candidates(self) -> list[Candidate]:
        return [c for c in self.candidates if c.is_running]

    @property
    def num_running(self) -> int:
        return sum(1 for c in self.candidates if c.is_running)

    def log_event(self, event: str):
        logger.info(event)
        self.event_logs.setdefault(self._round_idx, []).append(event)
