from __future__ import annotations

import copy
import logging
import random
from typing import Callable, Dict, List, Optional, Union

from .cards import Deck, cards_to_labels
from .evaluator import find_winners
from .models import (
    INTERACTIVE_PHASES,
    Action,
    ActionOutcome,
    ActionType,
    AllIn,
    Call,
    Fold,
    GameSettings,
    GameState,
    LastAction,
    Phase,
    Player,
    Pot,
    Raise,
    Rejection,
    RoomState,
    WinnerInfo,
    build_action,
)

LOGGER = logging.getLogger("holdem.engine")

# GameEngine owns one table and the hand in progress. It never touches the
# network or the clock; the embedding layer serialises calls into it.

PlayerFilter = Callable[[Player], bool]


def can_act(player: Player) -> bool:
    return not player.folded and not player.is_all_in


def can_be_dealt_in(player: Player) -> bool:
    return not player.folded and player.chips > 0 and player.is_connected


class GameEngine:
    """No-Limit Texas Hold'em rules engine for a single table."""

    def __init__(self, settings: Optional[GameSettings] = None, rng: Optional[random.Random] = None) -> None:
        self.settings = settings or GameSettings()
        self.deck = Deck(rng)
        self.state = GameState(
            min_raise=self.settings.big_blind,
            small_blind=self.settings.small_blind,
            big_blind=self.settings.big_blind,
        )
        self.hand_counter = 0
        # Chips each player has put in this hand, kept after a player leaves.
        self._contributions: Dict[str, int] = {}
        self._events: List[Dict[str, object]] = []

    @property
    def players(self) -> List[Player]:
        return self.state.players

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def find_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def _index_of(self, player_id: str) -> Optional[int]:
        for idx, player in enumerate(self.players):
            if player.id == player_id:
                return idx
        return None

    def is_hand_active(self) -> bool:
        return self.state.phase in INTERACTIVE_PHASES

    # Roster ----------------------------------------------------------

    def find_available_seat(self) -> int:
        taken = {player.seat_index for player in self.players}
        for seat in range(self.settings.max_players):
            if seat not in taken:
                return seat
        return -1

    def add_player(self, player: Player) -> bool:
        if len(self.players) >= self.settings.max_players:
            return False
        if self.find_player(player.id) is not None:
            return False

        joining_mid_hand = self.state.phase != Phase.WAITING
        if joining_mid_hand:
            # Sits out until the next deal.
            player.folded = True
            player.joined_mid_hand = True
            player.cards = []
            player.bet = 0
            player.total_bet = 0
            player.is_turn = False

        self.players.append(player)
        if not joining_mid_hand:
            self.state.pots[0].eligible_players.append(player.id)
        LOGGER.info("Player %s seated at %s (chips=%s, mid_hand=%s)", player.id, player.seat_index, player.chips, joining_mid_hand)
        return True

    def remove_player(self, player_id: str) -> bool:
        idx = self._index_of(player_id)
        if idx is None:
            return False

        player = self.players.pop(idx)
        for pot in self.state.pots:
            if player_id in pot.eligible_players:
                pot.eligible_players.remove(player_id)
        self._shift_indices_after_removal(idx)
        LOGGER.info("Player %s left the table", player_id)

        if self.is_hand_active():
            # Their chips stay in the pot; the hand carries on without them.
            # The pots are rebuilt from contributions when the street closes.
            self.state.pots[0].amount += player.bet
            if self._is_hand_over():
                self._end_hand()
            elif self._is_betting_round_over():
                self._advance_phase()
            elif player.is_turn:
                self._advance_to_next_player()
        return True

    def set_connected(self, player_id: str, connected: bool) -> bool:
        player = self.find_player(player_id)
        if player is None:
            return False
        player.is_connected = connected
        return True

    def _shift_indices_after_removal(self, removed: int) -> None:
        # Step back onto the previous seat so the next rotation lands on
        # whoever now occupies the removed position.
        if removed <= self.state.dealer_index:
            self.state.dealer_index -= 1
        if removed <= self.state.current_player_index:
            self.state.current_player_index -= 1

    # Hand lifecycle ----------------------------------------------------

    def can_start_hand(self) -> bool:
        return self.state.phase == Phase.WAITING and len(self._eligible_for_deal()) >= 2

    def _eligible_for_deal(self) -> List[Player]:
        return [player for player in self.players if player.chips > 0 and player.is_connected]

    def get_start_hand_error(self) -> Optional[str]:
        """Human-readable reason a new hand cannot be dealt, or None."""
        if self.is_hand_active():
            return "A hand is already in progress"
        connected = [player for player in self.players if player.is_connected]
        with_chips = [player for player in connected if player.chips > 0]
        if len(connected) < 2:
            return "Waiting for more players to join"
        if len(with_chips) < 2:
            if with_chips:
                return f"{with_chips[0].name} has won all the chips"
            return "All players are out of chips"
        busted = [player.name for player in connected if player.chips <= 0]
        if busted:
            return f"Eliminated: {', '.join(busted)}"
        return None

    def start_hand(self) -> bool:
        if self.state.phase != Phase.WAITING:
            LOGGER.debug("start_hand rejected: phase is %s", self.state.phase.value)
            return False
        active = self._eligible_for_deal()
        if len(active) < 2:
            LOGGER.debug("start_hand rejected: %s eligible players", len(active))
            return False

        self.deck.reset()
        self._contributions = {}
        self._events = []
        for player in self.players:
            player.reset_for_hand()
            # Busted or disconnected players sit this hand out.
            player.folded = not (player.chips > 0 and player.is_connected)

        state = self.state
        state.community_cards = []
        state.pots = [Pot(0, [player.id for player in active])]
        state.current_bet = 0
        state.min_raise = self.settings.big_blind
        state.small_blind = self.settings.small_blind
        state.big_blind = self.settings.big_blind
        state.winners = None
        state.last_action = None

        dealer_idx = self._next_index(state.dealer_index, can_be_dealt_in)
        assert dealer_idx is not None
        state.dealer_index = dealer_idx
        self.players[dealer_idx].is_dealer = True

        if len(active) == 2:
            sb_idx = dealer_idx
        else:
            sb_idx = self._next_index(dealer_idx, can_be_dealt_in)
        bb_idx = self._next_index(sb_idx, can_be_dealt_in)
        assert sb_idx is not None and bb_idx is not None

        self.hand_counter += 1
        self._emit(
            "HAND_START",
            hand=self.hand_counter,
            dealer=self.players[dealer_idx].id,
            players=[player.id for player in active],
        )
        self._post_blind(self.players[sb_idx], self.settings.small_blind, small=True)
        self._post_blind(self.players[bb_idx], self.settings.big_blind, small=False)
        state.current_bet = self.settings.big_blind

        self._deal_hole_cards(dealer_idx)
        state.phase = Phase.PREFLOP
        LOGGER.info(
            "Hand %s started: dealer=%s sb=%s bb=%s players=%s",
            self.hand_counter,
            self.players[dealer_idx].id,
            self.players[sb_idx].id,
            self.players[bb_idx].id,
            len(active),
        )

        first = self._next_index(bb_idx, can_act)
        if first is not None:
            self._set_turn(first)
        # Short stacks can leave nobody with a decision to make.
        if self._is_hand_over():
            self._end_hand()
        elif self._is_betting_round_over():
            self._advance_phase()
        return True

    def _post_blind(self, player: Player, amount: int, small: bool) -> None:
        posted = min(amount, player.chips)
        self._commit(player, posted)
        if small:
            player.is_small_blind = True
        else:
            player.is_big_blind = True
        self._emit("BLIND", player=player.id, amount=posted, blind="small" if small else "big")

    def _deal_hole_cards(self, dealer_idx: int) -> None:
        count = len(self.players)
        order = [self.players[(dealer_idx + offset) % count] for offset in range(1, count + 1)]
        dealt_in = [player for player in order if not player.folded]
        for _ in range(2):
            for player in dealt_in:
                card = self.deck.deal()
                if card is not None:
                    player.cards.append(card)

    def reset_for_next_hand(self) -> bool:
        if self.is_hand_active():
            return False
        for idx in range(len(self.players) - 1, -1, -1):
            player = self.players[idx]
            # Connected players with no chips stay seated but are not dealt in.
            if player.chips <= 0 and not player.is_connected:
                self.players.pop(idx)
                self._shift_indices_after_removal(idx)
                LOGGER.info("Pruned busted player %s", player.id)
        for player in self.players:
            player.reset_for_hand()
        state = self.state
        state.phase = Phase.WAITING
        state.current_player_index = -1
        state.community_cards = []
        state.pots = [Pot(0, [player.id for player in self.players])]
        state.current_bet = 0
        state.min_raise = self.settings.big_blind
        state.last_action = None
        state.winners = None
        self._contributions = {}
        return True

    def next_hand(self) -> bool:
        if not self.reset_for_next_hand():
            return False
        return self.start_hand()

    # Queries ---------------------------------------------------------

    def get_valid_actions(self, player_id: str) -> List[ActionType]:
        if not self.is_hand_active():
            return []
        player = self.find_player(player_id)
        if player is None or player.folded or player.is_all_in:
            return []

        actions = [ActionType.FOLD]
        if player.bet >= self.state.current_bet:
            actions.append(ActionType.CHECK)
        if player.bet < self.state.current_bet and player.chips > 0:
            actions.append(ActionType.CALL)
        if self.get_max_raise(player_id) >= self.state.min_raise:
            actions.append(ActionType.RAISE)
        if player.chips > 0:
            actions.append(ActionType.ALL_IN)
        return actions

    def get_call_amount(self, player_id: str) -> int:
        player = self.find_player(player_id)
        if player is None:
            return 0
        return max(0, min(self.state.current_bet - player.bet, player.chips))

    def get_min_raise(self) -> int:
        return self.state.min_raise

    def get_max_raise(self, player_id: str) -> int:
        player = self.find_player(player_id)
        if player is None:
            return 0
        return player.chips + player.bet - self.state.current_bet

    def total_pot(self) -> int:
        return sum(pot.amount for pot in self.state.pots) + sum(player.bet for player in self.players)

    def chips_in_play(self) -> int:
        """Stacks plus street bets plus pots; constant within a hand."""
        return (
            sum(player.chips for player in self.players)
            + sum(player.bet for player in self.players)
            + sum(pot.amount for pot in self.state.pots)
        )

    def current_player(self) -> Optional[Player]:
        for player in self.players:
            if player.is_turn:
                return player
        return None

    # Actions ---------------------------------------------------------

    def process_action(
        self,
        player_id: str,
        action: Union[Action, ActionType, str],
        amount: Optional[int] = None,
    ) -> bool:
        if isinstance(action, (ActionType, str)):
            built = build_action(action, amount)
            if isinstance(built, Rejection):
                LOGGER.debug("Rejected %s from %s: %s", action, player_id, built.value)
                return False
            action = built
        return self.submit(player_id, action).ok

    def submit(self, player_id: str, action: Action) -> ActionOutcome:
        """Validate then apply ``action``; rejected actions leave state untouched."""
        rejection = self._validate(player_id, action)
        if rejection is not None:
            LOGGER.debug("Rejected %s from %s: %s", action.type.value, player_id, rejection.value)
            return ActionOutcome(ok=False, rejection=rejection)

        player = self.find_player(player_id)
        assert player is not None
        phase = self.state.phase
        first_event = len(self._events)

        if isinstance(action, Fold):
            self._fold(player)
        elif isinstance(action, Call):
            self._commit(player, self.get_call_amount(player_id))
        elif isinstance(action, Raise):
            self._raise(player, action.amount)
        elif isinstance(action, AllIn):
            self._all_in(player)
        player.is_turn = False
        player.has_acted = True

        amount = action.amount if isinstance(action, Raise) else None
        # Phase is captured now because the hand may advance below.
        self.state.last_action = LastAction(player_id, action.type, amount, phase)
        self._emit(
            "ACTION",
            player=player_id,
            action=action.type.value,
            amount=amount,
            phase=phase.value,
            bet=player.bet,
            chips=player.chips,
        )

        if self._is_hand_over():
            self._end_hand()
        elif self._is_betting_round_over():
            self._advance_phase()
        else:
            self._advance_to_next_player()
        return ActionOutcome(ok=True, events=self._events[first_event:])

    def _validate(self, player_id: str, action: Action) -> Optional[Rejection]:
        if not self.is_hand_active():
            return Rejection.HAND_NOT_ACTIVE
        player = self.find_player(player_id)
        if player is None:
            return Rejection.UNKNOWN_PLAYER
        if player.folded:
            return Rejection.PLAYER_FOLDED
        if player.is_all_in:
            return Rejection.PLAYER_ALL_IN
        if not player.is_turn:
            return Rejection.NOT_YOUR_TURN
        if action.type not in self.get_valid_actions(player_id):
            return Rejection.ILLEGAL_ACTION
        if isinstance(action, Raise):
            if not self.state.min_raise <= action.amount <= self.get_max_raise(player_id):
                return Rejection.RAISE_OUT_OF_RANGE
        return None

    def _fold(self, player: Player) -> None:
        player.folded = True
        for pot in self.state.pots:
            if player.id in pot.eligible_players:
                pot.eligible_players.remove(player.id)

    def _raise(self, player: Player, increment: int) -> None:
        target = self.state.current_bet + increment
        self._commit(player, target - player.bet)
        self.state.current_bet = target
        self.state.min_raise = increment
        self._reopen_action(player)

    def _all_in(self, player: Player) -> None:
        new_bet = player.bet + player.chips
        self._commit(player, player.chips)
        if new_bet > self.state.current_bet:
            raised_by = new_bet - self.state.current_bet
            self.state.current_bet = new_bet
            # A short all-in lifts the price without re-opening the betting.
            if raised_by >= self.state.min_raise:
                self.state.min_raise = raised_by
                self._reopen_action(player)

    def _reopen_action(self, raiser: Player) -> None:
        for player in self.players:
            if player is not raiser and can_act(player):
                player.has_acted = False

    def _commit(self, player: Player, amount: int) -> None:
        amount = min(amount, player.chips)
        player.chips -= amount
        player.bet += amount
        player.total_bet += amount
        self._contributions[player.id] = self._contributions.get(player.id, 0) + amount
        if player.chips == 0:
            player.is_all_in = True

    # Out-of-band chip movement --------------------------------------

    def tip(self, from_id: str, to_id: str, amount: int) -> bool:
        if amount <= 0:
            return False
        sender = self.find_player(from_id)
        receiver = self.find_player(to_id)
        if sender is None or receiver is None:
            return False
        if sender.chips < amount:
            return False
        sender.chips -= amount
        receiver.chips += amount
        LOGGER.info("Tip %s -> %s: %s", from_id, to_id, amount)
        return True

    def add_chips_to_all(self, amount: int) -> None:
        if amount <= 0:
            return
        for player in self.players:
            if player.is_connected:
                player.chips += amount
        self.settings.starting_chips += amount
        LOGGER.info("Granted %s chips to every connected player", amount)

    def handle_turn_timeout(self, player_id: str) -> bool:
        player = self.find_player(player_id)
        if player is None or not player.is_turn or not self.is_hand_active():
            return False
        LOGGER.info("Turn timed out for %s; folding", player_id)
        return self.submit(player_id, Fold()).ok

    # Betting round flow ----------------------------------------------

    def _is_betting_round_over(self) -> bool:
        contenders = [player for player in self.players if can_act(player)]
        if len(contenders) <= 1:
            # A lone player still facing a bet must answer it first.
            return all(player.bet >= self.state.current_bet for player in contenders)
        return all(player.has_acted and player.bet == self.state.current_bet for player in contenders)

    def _is_hand_over(self) -> bool:
        unfolded = [player for player in self.players if not player.folded]
        if len(unfolded) <= 1:
            return True
        not_all_in = [player for player in unfolded if not player.is_all_in]
        return (
            len(not_all_in) <= 1
            and self._is_betting_round_over()
            and len(self.state.community_cards) >= 5
        )

    def _should_run_out(self) -> bool:
        unfolded = [player for player in self.players if not player.folded]
        return len([player for player in unfolded if not player.is_all_in]) <= 1

    def _next_index(self, start: int, predicate: PlayerFilter) -> Optional[int]:
        count = len(self.players)
        if count == 0:
            return None
        idx = start
        for _ in range(count):
            idx = (idx + 1) % count
            if predicate(self.players[idx]):
                return idx
        return None

    def _set_turn(self, idx: Optional[int]) -> None:
        for player in self.players:
            player.is_turn = False
        self.state.current_player_index = idx if idx is not None else -1
        if idx is not None and can_act(self.players[idx]):
            self.players[idx].is_turn = True

    def _advance_to_next_player(self) -> None:
        self._set_turn(self._next_index(self.state.current_player_index, can_act))

    def _advance_phase(self) -> None:
        self._gather_bets()
        self.state.current_bet = 0
        self.state.min_raise = self.settings.big_blind

        phase = self.state.phase
        if phase == Phase.PREFLOP:
            self.state.phase = Phase.FLOP
            self._deal_street(3)
        elif phase == Phase.FLOP:
            self.state.phase = Phase.TURN
            self._deal_street(1)
        elif phase == Phase.TURN:
            self.state.phase = Phase.RIVER
            self._deal_street(1)
        else:
            self._end_hand()
            return

        if self._should_run_out():
            self._end_hand()
            return
        # Post-flop action starts left of the button.
        self._set_turn(self._next_index(self.state.dealer_index, can_act))

    def _deal_street(self, count: int) -> None:
        self.deck.burn()
        cards = self.deck.deal_n(count)
        self.state.community_cards.extend(cards)
        self._emit("BOARD", phase=self.state.phase.value, cards=cards_to_labels(cards))

    def _deal_remaining_board(self) -> None:
        dealt = len(self.state.community_cards)
        for phase, board_size in ((Phase.FLOP, 3), (Phase.TURN, 4), (Phase.RIVER, 5)):
            if dealt < board_size:
                self.state.phase = phase
                self._deal_street(board_size - dealt)
                dealt = board_size

    def _gather_bets(self) -> None:
        self.state.pots = self._build_side_pots()
        for player in self.players:
            player.reset_for_round()

    def _build_side_pots(self) -> List[Pot]:
        """Slice contributions at every all-in level, main pot first."""
        live = [player.id for player in self.players if not player.folded]
        remaining = {pid: amount for pid, amount in self._contributions.items() if amount > 0}
        pots: List[Pot] = []
        unclaimed = 0
        while remaining:
            level = min(remaining.values())
            amount = level * len(remaining)
            eligible = [pid for pid in live if pid in remaining]
            for pid in list(remaining):
                remaining[pid] -= level
                if remaining[pid] == 0:
                    del remaining[pid]
            if not eligible:
                # Only folded or departed players reached this level.
                if pots:
                    pots[-1].amount += amount
                else:
                    unclaimed += amount
                continue
            amount += unclaimed
            unclaimed = 0
            if pots and pots[-1].eligible_players == eligible:
                pots[-1].amount += amount
            else:
                pots.append(Pot(amount, eligible))
        if not pots:
            pots.append(Pot(unclaimed, list(live)))
        return pots

    # Settlement --------------------------------------------------------

    def _end_hand(self) -> None:
        self._gather_bets()
        unfolded = [player for player in self.players if not player.folded]

        if len(unfolded) == 1:
            winner = unfolded[0]
            total = sum(pot.amount for pot in self.state.pots)
            winner.chips += total
            self.state.winners = [WinnerInfo(player_id=winner.id, pot_index=0, amount=total)]
            self._emit("POT_AWARD", player=winner.id, pot=0, amount=total, uncontested=True)
        else:
            self._deal_remaining_board()
            self.state.phase = Phase.SHOWDOWN
            self.state.winners = self._showdown(unfolded)

        for pot in self.state.pots:
            pot.amount = 0
        self.state.phase = Phase.ENDED
        self._set_turn(None)
        LOGGER.info(
            "Hand %s ended: %s",
            self.hand_counter,
            ", ".join(f"{w.player_id}+{w.amount}" for w in self.state.winners or []),
        )
        self._emit("HAND_END", hand=self.hand_counter, stacks={p.id: p.chips for p in self.players})

    def _showdown(self, contenders: List[Player]) -> List[WinnerInfo]:
        board = list(self.state.community_cards)
        by_id = {player.id: player for player in contenders}
        for player in contenders:
            self._emit("SHOWDOWN", player=player.id, cards=cards_to_labels(player.cards))
        winners: List[WinnerInfo] = []
        for pot_index, pot in enumerate(self.state.pots):
            candidates = [(pid, by_id[pid].cards, board) for pid in pot.eligible_players if pid in by_id]
            if pot.amount <= 0 or not candidates:
                continue
            pot_winners = find_winners(candidates)
            share, remainder = divmod(pot.amount, len(pot_winners))
            for position, (player_id, hand) in enumerate(pot_winners):
                # Odd chips go to the first winner in evaluation order.
                payout = share + (remainder if position == 0 else 0)
                by_id[player_id].chips += payout
                winners.append(WinnerInfo(player_id=player_id, pot_index=pot_index, amount=payout, hand=hand))
                self._emit(
                    "POT_AWARD",
                    player=player_id,
                    pot=pot_index,
                    amount=payout,
                    hand=hand.category.value,
                )
        return winners

    # State surface -----------------------------------------------------

    def _emit(self, ev: str, **data: object) -> None:
        event: Dict[str, object] = {"ev": ev}
        event.update(data)
        self._events.append(event)

    def drain_events(self) -> List[Dict[str, object]]:
        events = list(self._events)
        self._events.clear()
        return events

    def get_state(self) -> GameState:
        return copy.deepcopy(self.state)

    def state_for_player(self, player_id: str) -> Dict[str, object]:
        return self.state.to_dict(viewer=player_id)

    def room_state(self, room_id: str, host_id: Optional[str], is_game_started: bool) -> RoomState:
        state = self.get_state()
        return RoomState(
            room_id=room_id,
            host_id=host_id,
            players=state.players,
            game_state=state,
            settings=copy.deepcopy(self.settings),
            is_game_started=is_game_started,
        )
