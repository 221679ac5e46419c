from flask import Flask, request, jsonify, abort
from werkzeug.exceptions import HTTPException
from uttt.logic import GameState, IllegalMove, MARKS, REDIRECT_POLICIES, X
from uttt.ai import AIPlayer
from uttt.config import DIFFICULTIES
from uttt.controller import GameController, AI
import random, string, os

app = Flask(__name__)
app.config['AI_DIFFICULTY']  = os.environ.get('UTTT_DIFFICULTY', 'medium')
app.config['REDIRECT']       = os.environ.get('UTTT_REDIRECT', 'free')

games = {}

# ── Helpers ──────────────────────────────────────────────────────────────────
def new_room():
    while True:
        room = ''.join(random.choices(string.digits, k=5))
        if room not in games: return room

def get_game(room):
    ctl = games.get(room)
    if ctl is None: abort(404, description=f"no game {room}")
    return ctl

def json_body():
    data = request.get_json(silent=True)
    if data is None: data = {}
    if not isinstance(data, dict): abort(400, description="expected a JSON object")
    return data

def get_seed(data):
    seed = data.get('seed')
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, (int, str))):
        abort(400, description="seed must be an integer or a string")
    return seed

def run_ai(ctl, room):
    if ctl.phase != AI: return
    move = ctl.ai_turn()
    app.logger.debug("[%s] AI played %s", room, move)

def full_state(room, ctl):
    s = ctl.state()
    s["room"] = room
    return s

# ── Errors ───────────────────────────────────────────────────────────────────
@app.errorhandler(IllegalMove)
def illegal_move(e):
    return jsonify(error=str(e)), 400

@app.errorhandler(HTTPException)
def http_error(e):
    return jsonify(error=e.description), e.code

# ── Routes ───────────────────────────────────────────────────────────────────
@app.route('/api/games', methods=['POST'])
def create_game():
    data       = json_body()
    difficulty = data.get('difficulty', app.config['AI_DIFFICULTY'])
    human      = data.get('human', X)
    redirect   = data.get('redirect', app.config['REDIRECT'])
    if difficulty not in DIFFICULTIES: abort(400, description=f"unknown difficulty {difficulty!r}")
    if human not in MARKS:             abort(400, description=f"unknown player {human!r}")
    if redirect not in REDIRECT_POLICIES: abort(400, description=f"unknown redirect policy {redirect!r}")
    room = new_room()
    ctl = games[room] = GameController(human, difficulty, redirect, seed=get_seed(data))
    app.logger.info("[%s] new %s game, human plays %s", room, difficulty, human)
    run_ai(ctl, room)
    return jsonify(full_state(room, ctl)), 201

@app.route('/api/games/<room>')
def show_game(room):
    return jsonify(full_state(room, get_game(room)))

@app.route('/api/games/<room>/move', methods=['POST'])
def move(room):
    ctl  = get_game(room)
    data = json_body()
    try:
        b, c = int(data['board']), int(data['cell'])
    except (KeyError, TypeError, ValueError):
        abort(400, description="board and cell must be integers")
    ctl.play(b, c)
    run_ai(ctl, room)
    return jsonify(full_state(room, ctl))

@app.route('/api/games/<room>/rematch', methods=['POST'])
def rematch(room):
    ctl = get_game(room)
    ctl.new_game()
    run_ai(ctl, room)
    return jsonify(full_state(room, ctl))

@app.route('/api/games/<room>', methods=['DELETE'])
def close_game(room):
    get_game(room)
    del games[room]
    return '', 204

@app.route('/api/ai-move', methods=['POST'])
def ai_move():
    """Stateless move suggestion for a posted position."""
    data       = json_body()
    difficulty = data.get('difficulty', app.config['AI_DIFFICULTY'])
    if difficulty not in DIFFICULTIES: abort(400, description=f"unknown difficulty {difficulty!r}")
    try:
        state = GameState.from_dict(data.get('state') or {})
        rate  = data.get('mistake_rate')
        rate  = None if rate is None else float(rate)
    except (ValueError, TypeError) as e:
        abort(400, description=str(e))
    ai = AIPlayer(state.player, difficulty, seed=get_seed(data), mistake_rate=rate)
    move = ai.choose_move(state)
    return jsonify(
        move=list(move) if move else None,
        scores=[{"board": b, "cell": c, "score": v} for (b, c), v in ai.last_scores],
        mistakeRate=ai.mistake_rate,
    )

if __name__ == "__main__":
    app.run(debug=True)
