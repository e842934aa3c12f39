# main.py
from __future__ import annotations

from typing import Dict, List, Literal, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, constr

from irv_model import model as irv_model


# --------- Models ----------
class CandidateIn(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)


class Candidate(CandidateIn):
    id: str = Field(default_factory=lambda: uuid4().hex)


class BallotIn(BaseModel):
    rankings: List[constr(strip_whitespace=True, min_length=1)] = Field(
        ..., min_length=1, description="Candidate IDs by preference, every candidate exactly once"
    )
    weight: int = Field(1, ge=1, description="Number of identical ballots")


class Ballot(BallotIn):
    id: str = Field(default_factory=lambda: uuid4().hex)


class TabulationSettings(BaseModel):
    tie_rule: Literal["divisible", "equal_votes"] = "divisible"


# --------- App ----------
app = FastAPI(title="IRV Input API", version="0.1.0")

# --------- In-memory stores ----------
# Insertion order of CANDIDATES is the registration order of the election.
SETTINGS = TabulationSettings()
CANDIDATES: Dict[str, Candidate] = {
    "a": Candidate(id="a", name="A"),
    "b": Candidate(id="b", name="B"),
    "c": Candidate(id="c", name="C"),
}

BALLOTS: Dict[str, Ballot] = {
    "abc": Ballot(id="abc", rankings=["a", "b", "c"], weight=2),
    "bac": Ballot(id="bac", rankings=["b", "a", "c"], weight=2),
    "cab": Ballot(id="cab", rankings=["c", "a", "b"], weight=1),
}


# --------- Health ----------
@app.get("/health", tags=["meta"])
def health():
    return {"status": "ok"}


# --------- Settings ----------
@app.get("/settings", response_model=TabulationSettings, tags=["settings"])
def get_settings():
    return SETTINGS


@app.put("/settings", response_model=TabulationSettings, tags=["settings"])
def put_settings(s: TabulationSettings):
    global SETTINGS
    SETTINGS = s
    return SETTINGS


# --------- Candidates CRUD ----------
@app.get("/candidates", response_model=List[Candidate], tags=["candidates"])
def list_candidates():
    return list(CANDIDATES.values())


@app.post("/candidates", response_model=Candidate, status_code=201, tags=["candidates"])
def create_candidate(payload: CandidateIn):
    if any(c.name == payload.name for c in CANDIDATES.values()):
        raise HTTPException(status_code=400, detail={"duplicate_name": payload.name})
    cand = Candidate(**payload.model_dump())
    CANDIDATES[cand.id] = cand
    return cand


@app.delete("/candidates/{candidate_id}", status_code=204, tags=["candidates"])
def delete_candidate(candidate_id: str):
    if candidate_id not in CANDIDATES:
        raise HTTPException(status_code=404, detail="Candidate not found")
    # ballots still ranking this candidate become invalid and are rejected by /simulate
    del CANDIDATES[candidate_id]
    return


@app.delete("/candidates", status_code=204, tags=["candidates"])
def delete_all_candidates():
    CANDIDATES.clear()
    return


# --------- Ballots CRUD ----------
@app.get("/ballots", response_model=List[Ballot], tags=["ballots"])
def list_ballots():
    return list(BALLOTS.values())


@app.post("/ballots", response_model=Ballot, status_code=201, tags=["ballots"])
def create_ballot(payload: BallotIn):
    unknown = [cid for cid in payload.rankings if cid not in CANDIDATES]
    if unknown:
        raise HTTPException(status_code=400, detail={"unknown_candidate_ids": unknown})
    repeated = sorted({cid for cid in payload.rankings if payload.rankings.count(cid) > 1})
    if repeated:
        raise HTTPException(status_code=400, detail={"repeated_candidate_ids": repeated})
    # completeness is checked by /simulate, candidates may still be added
    ballot = Ballot(**payload.model_dump())
    BALLOTS[ballot.id] = ballot
    return ballot


@app.delete("/ballots/{ballot_id}", status_code=204, tags=["ballots"])
def delete_ballot(ballot_id: str):
    if ballot_id not in BALLOTS:
        raise HTTPException(status_code=404, detail="Ballot not found")
    del BALLOTS[ballot_id]
    return


@app.delete("/ballots", status_code=204, tags=["ballots"])
def delete_all_ballots():
    BALLOTS.clear()
    return


# --------- Tabulation ----------
class SimRequest(BaseModel):
    tie_rule: Optional[Literal["divisible", "equal_votes"]] = None
    include_rounds: bool = False


def build_election(tie_rule: str) -> irv_model.Election:
    candidate_ids = list(CANDIDATES.keys())
    if not candidate_ids:
        raise HTTPException(status_code=400, detail="No candidates registered")

    election = irv_model.Election(num_candidates=len(candidate_ids), tie_rule=tie_rule)
    for candidate in CANDIDATES.values():
        election.add_candidate(candidate.id)

    for ballot in BALLOTS.values():
        ranks = [0] * len(candidate_ids)
        for rank, cid in enumerate(ballot.rankings, start=1):
            if cid in CANDIDATES:
                ranks[candidate_ids.index(cid)] = rank
        try:
            for _ in range(ballot.weight):
                election.add_ballot(ranks)
        except irv_model.ElectionError as e:
            raise HTTPException(status_code=400, detail={"ballot_id": ballot.id, "error": str(e)})

    return election


@app.post("/simulate", tags=["simulate"])
def simulate(req: SimRequest):
    tie_rule = req.tie_rule or SETTINGS.tie_rule
    election = build_election(tie_rule)
    winners = election.select_winner()

    result = {
        "tie_rule": tie_rule,
        "winners": [CANDIDATES[cid] for cid in winners],
        "is_tie": len(winners) > 1,
        "num_ballots": election.total_ballots,
        "quota": election.quota,
        "num_rounds": election.round_no,
        "exhausted": len(election.exhausted),
    }
    if not req.include_rounds:
        return result

    rounds = [{
        "index": 0,
        "events": [],
        "candidates": [  # round 0 shows first preferences before any transfer
            {
                "id": cand.name,
                "name": CANDIDATES[cand.name].name,
                "votes": cand.tally_after_first,
                "transfers": cand.tally_after_first,
                "status": "running",
            } for cand in election.candidates
        ],
    }]
    for round_no in range(1, election.round_no + 1):
        logs = election.candidate_logs[round_no - 1]
        rounds.append({
            "index": round_no,
            "events": election.event_logs[round_no - 1],
            "candidates": [
                {
                    "id": cand.name,
                    "name": CANDIDATES[cand.name].name,
                    "votes": logs[idx].votes,
                    "transfers": logs[idx].transfer,
                    "status": logs[idx].status,
                } for idx, cand in enumerate(election.candidates)
            ]
        })
    result["rounds"] = rounds
    return result


# --------- Dev entrypoint ----------
# Run: uvicorn irv_demo_site.main:app --reload
