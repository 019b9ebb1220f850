"""Order and cap the itineraries returned to the caller."""

from planner.core.itinerary import DirectItinerary, Itinerary, TransferItinerary
from planner.core.resolvers.transfer import transfer_sort_key

MAX_RESULTS = 5


def rank_itineraries(
    direct: list[DirectItinerary],
    transfers: list[TransferItinerary],
    limit: int = MAX_RESULTS,
) -> list[Itinerary]:
    """Direct rides first (in resolver order), then transfers by total distance.

    A direct ride always outranks a transfer, however much shorter the
    transfer is.
    """
    ranked: list[Itinerary] = list(direct)
    ranked.extend(sorted(transfers, key=transfer_sort_key))
    return ranked[:max(0, limit)]
