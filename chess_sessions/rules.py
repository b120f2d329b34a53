"""Rules authority adapter over python-chess.

python-chess is the move-legality oracle. This adapter keeps it behind
a small surface that speaks Position and Move, so nothing else in the
package touches chess.Board directly. Rejections are returned as
values; callers snap the piece back and carry on.
"""

from __future__ import annotations

import chess

from chess_sessions.models import Move, Position, Rejection, Side, Termination

_PROMOTION_PIECES = {
    "q": chess.QUEEN,
    "r": chess.ROOK,
    "b": chess.BISHOP,
    "n": chess.KNIGHT,
}


def _side(color: chess.Color) -> Side:
    return Side.WHITE if color == chess.WHITE else Side.BLACK


def _termination(board: chess.Board) -> Termination:
    if board.is_checkmate():
        return Termination.CHECKMATE
    if board.is_game_over():
        return Termination.DRAW
    return Termination.NONE


def _position(board: chess.Board) -> Position:
    return Position(
        fen=board.fen(),
        turn=_side(board.turn),
        termination=_termination(board),
        in_check=board.is_check(),
    )


class RulesAuthority:
    """Deterministic, side-effect-free wrapper around chess.Board."""

    def new_game(self, fen: str | None = None) -> Position:
        """Build the starting Position, or the one described by fen.

        Raises:
            ValueError: If the FEN cannot be parsed or describes an
                impossible position.
        """
        board = chess.Board(fen) if fen is not None else chess.Board()
        if not board.is_valid():
            raise ValueError(f"Invalid FEN position: {fen}")
        return _position(board)

    def attempt_move(self, position: Position, move: Move) -> Position | Rejection:
        """Apply move to position if legal.

        A pawn reaching the last rank without an explicit promotion
        promotes to a queen.

        Returns:
            The resulting Position, or a Rejection describing why not.
        """
        board = chess.Board(position.fen)
        if board.is_game_over():
            return Rejection("Game is already over.")

        piece = board.piece_at(chess.parse_square(move.from_square))
        if piece is None:
            return Rejection(f"No piece on {move.from_square}.")
        if piece.color != board.turn:
            return Rejection(f"It is {_side(board.turn).value}'s turn.")

        chess_move = self._to_chess_move(board, move)
        if chess_move not in board.legal_moves:
            return Rejection(f"Illegal move: {move.uci()}.")

        board.push(chess_move)
        return _position(board)

    def is_terminal(self, position: Position) -> Termination:
        return _termination(chess.Board(position.fen))

    def side_to_move(self, position: Position) -> Side:
        return _side(chess.Board(position.fen).turn)

    def to_fen(self, position: Position) -> str:
        return chess.Board(position.fen).fen()

    def san(self, position: Position, move: Move) -> str:
        """SAN for a legal move in position, e.g. 'Nf3' or 'exd5'.

        Raises:
            ValueError: If the move is not legal in position.
        """
        board = chess.Board(position.fen)
        chess_move = self._to_chess_move(board, move)
        if chess_move not in board.legal_moves:
            raise ValueError(f"Illegal move: {move.uci()}")
        return board.san(chess_move)

    def describe_status(self, position: Position) -> str:
        """Human-readable turn/termination line for a status bar."""
        if position.termination is Termination.CHECKMATE:
            winner = position.turn.opponent.value.capitalize()
            return f"Checkmate! {winner} wins."
        if position.termination is Termination.DRAW:
            return "Draw."
        status = f"{position.turn.value.capitalize()} to move."
        if position.in_check:
            status += " Check!"
        return status

    @staticmethod
    def _to_chess_move(board: chess.Board, move: Move) -> chess.Move:
        from_sq = chess.parse_square(move.from_square)
        to_sq = chess.parse_square(move.to_square)
        promotion = _PROMOTION_PIECES.get(move.promotion) if move.promotion else None

        if promotion is None:
            piece = board.piece_at(from_sq)
            last_rank = 7 if board.turn == chess.WHITE else 0
            if (
                piece is not None
                and piece.piece_type == chess.PAWN
                and chess.square_rank(to_sq) == last_rank
            ):
                promotion = chess.QUEEN

        return chess.Move(from_sq, to_sq, promotion=promotion)
