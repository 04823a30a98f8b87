"""Finance Console: petty cash, employee loans and wage garnishments."""
