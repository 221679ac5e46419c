"""Ultimate Tic Tac Toe rules and an adaptive alpha-beta AI."""
